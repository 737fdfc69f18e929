#!/usr/bin/env python
# ============================================================================
# PROFILE REGISTRATION SCRIPT
# ============================================================================
# EPOCH: 1 - SPOT PROVISIONING
# PURPOSE: Store a machine profile and seed its image state
# USAGE:
#   python scripts/register_profile.py profiles/linux-x64.json
#   python scripts/register_profile.py profiles/linux-x64.json --trigger-build
#   python scripts/register_profile.py profiles/linux-x64.json --dry-run
# ============================================================================
"""
Register a machine profile.

1. Validate the profile document (same rules the router applies)
2. Store it in machine_profiles (create or replace)
3. Create a `building` image state record unless one already exists
4. Optionally start the profile's image pipeline (spot-runner-<name>)

A new profile usually has "imageId": "pending"; jobs routed to it are
acknowledged and skipped until the first build lands.
"""

import sys
import os
import argparse
import json
import logging

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from botocore.exceptions import BotoCoreError, ClientError

from core.config import get_defaults
from core.errors import ProfileValidationError
from core.models import IMAGE_PENDING
from function.config import get_config
from infrastructure.image_pipeline import ImagePipelineClient
from repositories import ImageStateRepository, ProfileRepository
from services.routing import validate_profile

logger = logging.getLogger("register_profile")


def load_document(path: str) -> dict:
    with open(path, "r", encoding="utf-8") as f:
        document = json.load(f)
    if not isinstance(document, dict):
        raise ValueError(f"{path}: profile must be a JSON object")
    return document


def validate_for_registration(name: str, document: dict) -> dict:
    """Validate, allowing the pending image sentinel for a fresh profile."""
    document = {k: v for k, v in document.items() if k != "name"}
    document.setdefault("imageId", IMAGE_PENDING)
    validate_profile(name, document)
    return document


def trigger_build(profile_name: str) -> None:
    pipelines = ImagePipelineClient(region=get_config().aws_region)
    pipeline_name = get_defaults().runner.pipeline_name(profile_name)
    try:
        arn = pipelines.find_pipeline_arn(pipeline_name)
        if not arn:
            print(f"Pipeline {pipeline_name} not found, no build started")
            return
        build_arn = pipelines.start_build(arn)
        print(f"Build started: {build_arn}")
    except (ClientError, BotoCoreError) as e:
        # Registration already succeeded; the reconciler will pick the build up later
        print(f"Failed to start build for {pipeline_name}: {e}")


def main():
    parser = argparse.ArgumentParser(description="Register a machine profile")
    parser.add_argument("path", help="Profile JSON file")
    parser.add_argument("--name", help="Profile name (default: document name or file stem)")
    parser.add_argument("--trigger-build", action="store_true", help="Start the image pipeline")
    parser.add_argument("--dry-run", action="store_true", help="Validate only")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    document = load_document(args.path)
    name = (
        args.name
        or document.get("name")
        or os.path.splitext(os.path.basename(args.path))[0]
    ).lower()

    try:
        document = validate_for_registration(name, document)
    except ProfileValidationError as e:
        print(f"Invalid profile {name}:")
        for problem in e.problems:
            print(f"  - {problem}")
        sys.exit(1)

    print(f"Profile {name} is valid")
    if args.dry_run:
        print(json.dumps(document, indent=2))
        return

    ProfileRepository().put(name, document)
    print(f"Stored profile {name}")

    if ImageStateRepository().initialize(name):
        print(f"Created image state for {name} (building)")
    else:
        print(f"Image state for {name} already exists, left unchanged")

    if args.trigger_build:
        trigger_build(name)


if __name__ == "__main__":
    main()
