"""MITRE ATT&CK technique library.

Techniques come from the enterprise ATT&CK STIX bundle. When the feed cannot
be used the endpoint answers with a fixed sample set instead of an error, so
an authenticated caller always gets technique data back.
"""
from __future__ import annotations

import html
import logging
import os
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests
from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from auth import get_optional_user
from dependencies import get_env_int, get_http_session
from models import MitreTechnique

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/mitre-attack", tags=["mitre"])

STIX_FEED_URL = os.getenv(
    "MITRE_STIX_FEED_URL",
    "https://raw.githubusercontent.com/mitre/cti/master/enterprise-attack/enterprise-attack.json",
)
FETCH_TIMEOUT_SECONDS = get_env_int("MITRE_FETCH_TIMEOUT_SECONDS", 30)
CACHE_SECONDS = get_env_int("MITRE_CACHE_SECONDS", 24 * 60 * 60)
MAX_TECHNIQUES = 1000

FEED_SOURCE = "MITRE ATTACK STIX Feed"
FALLBACK_SOURCE = "Sample Data (Fallback)"
ERROR_FALLBACK_SOURCE = "Sample Data (Error Fallback)"
UNKNOWN_TACTIC = "Unknown Tactic"

TACTICS = [
    {"id": "TA0001", "name": "Initial Access"},
    {"id": "TA0002", "name": "Execution"},
    {"id": "TA0003", "name": "Persistence"},
    {"id": "TA0004", "name": "Privilege Escalation"},
    {"id": "TA0005", "name": "Defense Evasion"},
    {"id": "TA0006", "name": "Credential Access"},
    {"id": "TA0007", "name": "Discovery"},
    {"id": "TA0008", "name": "Lateral Movement"},
    {"id": "TA0009", "name": "Collection"},
    {"id": "TA0010", "name": "Exfiltration"},
    {"id": "TA0011", "name": "Command and Control"},
    {"id": "TA0040", "name": "Impact"},
]
TACTIC_NAMES = {tactic["name"].lower().replace(" ", "-"): tactic["name"] for tactic in TACTICS}

PLATFORMS = [
    "Windows",
    "macOS",
    "Linux",
    "PRE",
    "Office Suite",
    "Identity Provider",
    "SaaS",
    "IaaS",
    "Network Devices",
    "Containers",
    "ESXi",
]

# Last successful feed parse: {"data": [...], "timestamp": float}
_technique_cache: Optional[Dict[str, Any]] = None


class MitreFeedError(Exception):
    """The feed answered but gave us nothing usable"""


def tactic_display_name(phase_name: Optional[str]) -> str:
    if not phase_name:
        return UNKNOWN_TACTIC
    return TACTIC_NAMES.get(phase_name, phase_name.replace("-", " ").title())


def parse_technique(stix_object: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    """Map one STIX attack-pattern to a technique, or None if it has no id or name"""
    mitre_id = next(
        (
            ref.get("external_id")
            for ref in stix_object.get("external_references") or []
            if isinstance(ref, dict) and ref.get("source_name") == "mitre-attack" and ref.get("external_id")
        ),
        None,
    ) or stix_object.get("id")
    name = stix_object.get("name")
    if not isinstance(mitre_id, str) or not isinstance(name, str) or not mitre_id or not name:
        return None

    phases = stix_object.get("kill_chain_phases")
    first_phase = phases[0] if isinstance(phases, list) and phases else None
    phase_name = first_phase.get("phase_name") if isinstance(first_phase, dict) else None
    if not isinstance(phase_name, str):
        phase_name = None
    platforms = stix_object.get("x_mitre_platforms")

    return {
        "id": mitre_id,
        "name": html.unescape(name),
        "description": html.unescape(str(stix_object.get("description") or "No description available")),
        "tactic": html.unescape(phase_name or ""),
        "tacticName": tactic_display_name(phase_name),
        "platforms": platforms if isinstance(platforms, list) else [],
        "url": f"https://attack.mitre.org/techniques/{mitre_id}",
    }


def parse_stix_bundle(bundle: Any) -> List[Dict[str, Any]]:
    """Techniques from a STIX bundle. Raises MitreFeedError when the bundle has the wrong shape."""
    if not isinstance(bundle, dict):
        raise MitreFeedError(f"Expected a STIX bundle object, got {type(bundle).__name__}")
    objects = bundle.get("objects") or []
    if not isinstance(objects, list):
        raise MitreFeedError(f"Expected STIX objects to be a list, got {type(objects).__name__}")

    techniques = []
    for stix_object in objects:
        if not isinstance(stix_object, dict) or stix_object.get("type") != "attack-pattern":
            continue
        technique = parse_technique(stix_object)
        if technique is not None:
            techniques.append(technique)
        if len(techniques) >= MAX_TECHNIQUES:
            break
    return techniques


def fetch_techniques(session: Optional[requests.Session] = None) -> List[Dict[str, Any]]:
    """Download and parse the STIX bundle. Raises on any failure."""
    session = session or get_http_session()
    response = session.get(STIX_FEED_URL, timeout=FETCH_TIMEOUT_SECONDS)
    response.raise_for_status()
    techniques = parse_stix_bundle(response.json())
    if not techniques:
        raise MitreFeedError("No techniques found in MITRE data")
    return techniques


def get_techniques(now: Optional[float] = None) -> tuple:
    """Techniques plus cache status, served from the in-process cache while it is fresh"""
    global _technique_cache
    now = time.monotonic() if now is None else now
    cache = _technique_cache
    if cache is not None and now - cache["timestamp"] < CACHE_SECONDS:
        return cache["data"], "cached"

    techniques = fetch_techniques()
    _technique_cache = {"data": techniques, "timestamp": now}
    return techniques, "fresh"


def clear_cache() -> None:
    global _technique_cache
    _technique_cache = None


def _sample(technique_id, name, tactic, platforms, description):
    return MitreTechnique(
        id=technique_id,
        name=name,
        description=description,
        tactic=tactic.lower().replace(" ", "-"),
        tacticName=tactic,
        platforms=platforms,
        url=f"https://attack.mitre.org/techniques/{technique_id}",
    ).model_dump()


SAMPLE_TECHNIQUES = [
    _sample(
        "T1548", "Abuse Elevation Control Mechanism", "Privilege Escalation", ["Windows", "macOS", "Linux"],
        "Adversaries may circumvent mechanisms designed to control elevate privileges to gain higher-level "
        "permissions. Most modern systems contain native elevation control mechanisms that are intended to "
        "limit privileges that a user can perform on a machine.",
    ),
    _sample(
        "T1134", "Access Token Manipulation", "Privilege Escalation", ["Windows"],
        "Adversaries may modify access tokens to operate under a different user or system security context "
        "to perform actions and bypass access controls. Windows uses access tokens to determine the ownership "
        "of a running process.",
    ),
    _sample(
        "T1531", "Account Access Removal", "Impact", ["Windows", "macOS", "Linux", "Office Suite", "SaaS", "IaaS"],
        "Adversaries may interrupt availability of system and network resources by inhibiting access to "
        "accounts utilized by legitimate users. Accounts may be deleted, locked, or manipulated to remove access.",
    ),
    _sample(
        "T1078", "Valid Accounts", "Initial Access",
        ["Windows", "macOS", "Linux", "Office Suite", "SaaS", "IaaS", "Network Devices"],
        "Adversaries may obtain and abuse credentials of existing accounts as a means of gaining Initial "
        "Access, Persistence, Privilege Escalation, or Defense Evasion.",
    ),
    _sample(
        "T1055", "Process Injection", "Execution", ["Windows", "macOS", "Linux"],
        "Adversaries may inject code into processes in order to evade process-based defenses as well as "
        "possibly elevate privileges. Process injection is a method of executing arbitrary code in the address "
        "space of a separate live process.",
    ),
    _sample(
        "T1053", "Scheduled Task/Job", "Persistence", ["Windows", "macOS", "Linux"],
        "Adversaries may abuse task scheduling functionality to gain initial access, persistence, and "
        "privilege escalation. Most modern operating systems have built-in functionality to schedule programs "
        "or scripts to be executed at a specified date and time.",
    ),
    _sample(
        "T1083", "File and Directory Discovery", "Discovery", ["Windows", "macOS", "Linux"],
        "Adversaries may enumerate files and directories or may search in specific locations of a host or "
        "network share for certain information within a file system.",
    ),
    _sample(
        "T1562", "Impair Defenses", "Defense Evasion", ["Windows", "macOS", "Linux"],
        "Adversaries may modify system configurations to disable security tools and logging capabilities. "
        "This can be done to prevent detection of their activities and to maintain persistence.",
    ),
    _sample(
        "T1071", "Application Layer Protocol", "Command and Control", ["Windows", "macOS", "Linux", "Network Devices"],
        "Adversaries may communicate using application layer protocols to avoid detection/network filtering "
        "by blending in with existing traffic. Commands to the remote system, and often the results of those "
        "commands, will be embedded within the protocol traffic between the client and server.",
    ),
    _sample(
        "T1041", "Exfiltration Over C2 Channel", "Exfiltration",
        ["Windows", "macOS", "Linux", "Office Suite", "SaaS", "IaaS"],
        "Adversaries may steal data by exfiltrating it over an existing Command and Control channel. The "
        "stolen data is encoded into the normal communications channel using the same protocol as command and "
        "control communications.",
    ),
    _sample(
        "T1490", "Inhibit System Recovery", "Impact", ["Windows", "macOS", "Linux"],
        "Adversaries may delete or remove built-in operating system data and turn off services designed to "
        "aid in the recovery of a corrupted system to prevent recovery.",
    ),
    _sample(
        "T1673", "Virtual Machine Discovery", "Discovery", ["ESXi", "Containers"],
        "An adversary may attempt to enumerate running virtual machines (VMs) after gaining access to a host "
        "or hypervisor. For example, adversaries may enumerate a list of VMs on an ESXi hypervisor using a "
        "Hypervisor CLI.",
    ),
    _sample(
        "T1497", "Virtualization/Sandbox Evasion", "Defense Evasion", ["Windows", "macOS", "Linux", "Containers"],
        "Adversaries may employ various means to detect and avoid virtualization and analysis environments. "
        "This may include changing behaviors based on the results of checks for the presence of artifacts "
        "indicative of a virtual machine environment (VME) or sandbox.",
    ),
    _sample(
        "T1600", "Weaken Encryption", "Defense Evasion", ["Network Devices"],
        "Adversaries may compromise a network device's encryption capability in order to bypass encryption "
        "that would otherwise protect data communications.",
    ),
    _sample(
        "T1102", "Web Service", "Command and Control", ["SaaS", "IaaS", "Office Suite"],
        "Adversaries may use an existing, legitimate external Web service as a means for relaying data to/from "
        "a compromised system. Popular websites, cloud services, and social media acting as a mechanism for C2 "
        "may give a significant amount of cover.",
    ),
]


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _sample_response(source: str, note: str, fallback_reason: Optional[str] = None) -> Dict[str, Any]:
    body = {
        "success": True,
        "data": [dict(technique) for technique in SAMPLE_TECHNIQUES],
        "count": len(SAMPLE_TECHNIQUES),
        "note": note,
        "source": source,
        "lastUpdated": _now_iso(),
    }
    if fallback_reason is not None:
        body["fallbackReason"] = fallback_reason
    return body


@router.get("/techniques")
async def list_techniques(
    request_type: Optional[str] = Query(None, alias="type"),
    current_user=Depends(get_optional_user),
):
    if current_user is None:
        return JSONResponse(status_code=401, content={"success": False, "error": "Unauthorized"})

    if request_type == "metadata":
        return {"success": True, "data": {"tactics": TACTICS, "platforms": PLATFORMS}}

    try:
        try:
            techniques, cache_status = await run_in_threadpool(get_techniques)
        except (requests.RequestException, ValueError, MitreFeedError) as e:
            logger.warning("Failed to fetch MITRE STIX feed, falling back to sample data: %s", e)
            return _sample_response(
                FALLBACK_SOURCE,
                "Using sample data due to MITRE STIX feed error. Feed may be temporarily unavailable.",
                str(e) or e.__class__.__name__,
            )

        return {
            "success": True,
            "data": techniques,
            "count": len(techniques),
            "source": FEED_SOURCE,
            "lastUpdated": _now_iso(),
            "cacheStatus": cache_status,
        }
    except Exception:
        logger.exception("Error in MITRE ATT&CK technique endpoint")
        return _sample_response(ERROR_FALLBACK_SOURCE, "Using sample data due to system error")
