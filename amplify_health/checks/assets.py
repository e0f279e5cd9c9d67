"""Static asset checks."""
from __future__ import annotations

from typing import List

from amplify_health.models import Finding, Impact, Status
from amplify_health.snapshot import ProjectSnapshot

CATEGORY = "assets"


def check_large_images(snapshot: ProjectSnapshot) -> List[Finding]:
    if not snapshot.has_public_dir:
        return []
    images = snapshot.large_images
    if images:
        return [Finding(
            id="assets-large-images", category=CATEGORY, name="Large Unoptimized Images", status=Status.WARN,
            message=(
                f"Found {len(images)} images over 500KB. "
                "Consider using next/image or optimizing with tools like squoosh."
            ),
            details=list(images[:10]), impact=Impact.MEDIUM,
            docs_url="https://nextjs.org/docs/app/building-your-application/optimizing/images",
        )]
    return [Finding(
        id="assets-large-images", category=CATEGORY, name="Image Sizes", status=Status.PASS,
        message="No large unoptimized images detected in public folder.", impact=Impact.MEDIUM,
    )]
