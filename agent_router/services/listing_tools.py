"""Local listing tools used by the product agent."""
from __future__ import annotations

import uuid
from typing import Any, Dict, List

from agent_router.services.tools import FunctionTool, Tool

_LISTING_PARAMETERS = {
    "type": "object",
    "properties": {
        "title": {"type": "string", "description": "Listing title"},
        "description": {"type": "string", "description": "Listing body"},
        "images": {"type": "integer", "description": "Number of product images"},
    },
}


def _listing_problems(listing: Dict[str, Any]) -> List[str]:
    problems = []
    if not str(listing.get("title", "")).strip():
        problems.append("title is required")
    if not str(listing.get("description", "")).strip():
        problems.append("description is required")
    return problems


async def analyze_listing(arguments: Dict[str, Any]) -> Dict[str, Any]:
    title_words = len(str(arguments.get("title", "")).split())
    description_words = len(str(arguments.get("description", "")).split())
    images = int(arguments.get("images", 0) or 0)

    recommendations = []
    if title_words < 5:
        recommendations.append("Add high-volume keywords to the title")
    if images < 3:
        recommendations.append("Add lifestyle and detail photos")
    if description_words < 30:
        recommendations.append("Describe benefits and specifications")
    score = round(10.0 - 2.5 * len(recommendations), 1)
    return {"success": True, "data": {"score": score, "recommendations": recommendations}}


async def validate_listing(arguments: Dict[str, Any]) -> Dict[str, Any]:
    problems = _listing_problems(arguments)
    if problems:
        return {"success": False, "error": "; ".join(problems)}
    return {"success": True, "data": {"valid": True, "warnings": []}}


async def upload_listing(arguments: Dict[str, Any]) -> Dict[str, Any]:
    problems = _listing_problems(arguments)
    if problems:
        return {"success": False, "error": "; ".join(problems)}
    return {"success": True, "data": {"listingId": f"LST-{uuid.uuid4().hex[:8].upper()}"}}


def listing_tools() -> List[Tool]:
    return [
        FunctionTool(
            "listing_analyzer",
            analyze_listing,
            description="Score a product listing and suggest improvements.",
            parameters=_LISTING_PARAMETERS,
            pending_message="Analyzing your listing...",
        ),
        FunctionTool(
            "listing_validator",
            validate_listing,
            description="Check a listing has the fields a marketplace requires.",
            parameters=_LISTING_PARAMETERS,
            pending_message="Validating listing data...",
        ),
        FunctionTool(
            "marketplace_uploader",
            upload_listing,
            description="Publish a validated listing.",
            parameters=_LISTING_PARAMETERS,
            pending_message="Uploading to marketplace...",
        ),
    ]
