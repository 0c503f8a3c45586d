from __future__ import annotations

import importlib.util
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import requests

from .crawl_config import CrawlSettings

_SECRET_TOKENS = ("key", "token", "secret", "password", "pass")


def _is_secret_name(name: str) -> bool:
    lowered = (name or "").lower()
    return any(token in lowered for token in _SECRET_TOKENS)


def redact_value(value: str, keep: int = 4) -> str:
    raw = (value or "").strip()
    if not raw:
        return ""
    if len(raw) <= keep * 2:
        return "*" * len(raw)
    return f"{raw[:keep]}...{raw[-keep:]}"


def _redacted_env_value(name: str, value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return redact_value(value) if _is_secret_name(name) else value


def _module_available(name: str) -> bool:
    try:
        return importlib.util.find_spec(name) is not None
    except (ImportError, ValueError):
        return False


def _check_writable(path: Path) -> bool:
    try:
        if path.exists():
            return os.access(path, os.W_OK)
        parent = path.parent
        while not parent.exists() and parent != parent.parent:
            parent = parent.parent
        return os.access(parent, os.W_OK)
    except OSError:
        return False


def ping_clickhouse(url: str, timeout: float = 5.0) -> Tuple[bool, str]:
    try:
        resp = requests.get(f"{url}/ping", timeout=timeout)
    except requests.RequestException as exc:
        return False, f"unreachable: {exc}"
    if resp.status_code == 200:
        return True, f"{url} answered {resp.text.strip() or 'ok'}"
    return False, f"{url}/ping returned HTTP {resp.status_code}"


def build_doctor_report(settings: Optional[CrawlSettings] = None, *, ping: bool = True) -> Dict[str, Any]:
    settings = settings or CrawlSettings.from_env()
    report: Dict[str, Any] = {
        "generated_at": datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z"),
        "environment": settings.environment,
        "ok": True,
        "checks": [],
    }

    def add_check(
        name: str,
        status: bool,
        *,
        detail: Optional[str] = None,
        remedy: Optional[str] = None,
        level: str = "warn",
        value: Optional[str] = None,
    ) -> None:
        entry = {
            "name": name,
            "status": "ok" if status else "missing",
            "level": level,
            "detail": detail,
        }
        if remedy:
            entry["remedy"] = remedy
        if value is not None:
            entry["value"] = _redacted_env_value(name, value)
        report["checks"].append(entry)
        if not status and level == "warn":
            report["ok"] = False

    if settings.clickhouse_url:
        if ping:
            reachable, detail = ping_clickhouse(settings.clickhouse_url, timeout=min(5, settings.clickhouse_timeout_secs))
        else:
            reachable, detail = True, "ping skipped"
        add_check(
            "CLICKHOUSE_URL",
            reachable,
            detail=f"db={settings.clickhouse_db}; {detail}",
            remedy="Check CLICKHOUSE_URL and network access to the ClickHouse HTTP port.",
            value=settings.clickhouse_url,
        )
        add_check(
            "CLICKHOUSE_PASSWORD",
            bool(settings.clickhouse_password),
            detail="credentials present" if settings.clickhouse_password else "no password configured",
            level="info",
            value=settings.clickhouse_password,
        )
    else:
        add_check(
            "CLICKHOUSE_URL",
            False,
            detail="Record inserts disabled; rows only reach local fallback directories",
            remedy="Set CLICKHOUSE_URL (or TMC_CLICKHOUSE_URL).",
        )

    s3_values = {
        "S3_ENDPOINT": settings.s3_endpoint,
        "S3_BUCKET": settings.s3_bucket,
        "S3_ACCESS_KEY_ID": settings.s3_access_key_id,
        "S3_SECRET_ACCESS_KEY": settings.s3_secret_access_key,
    }
    missing_s3 = [name for name, value in s3_values.items() if not value]
    add_check(
        "S3_*",
        not missing_s3,
        detail="Artifact uploads enabled" if not missing_s3 else f"Artifact uploads disabled; missing {', '.join(missing_s3)}",
        remedy="Set S3_ENDPOINT, S3_BUCKET, S3_ACCESS_KEY_ID, S3_SECRET_ACCESS_KEY together.",
    )

    for module, remedy in (
        ("playwright", "Install Playwright and run `playwright install --with-deps chromium`."),
        ("crawlee", "Install crawlee with the playwright extra: pip install 'crawlee[playwright]'."),
    ):
        available = _module_available(module)
        add_check(module, available, detail="importable" if available else "not installed", remedy=remedy)

    local_paths = {
        "NAVIGATION_WRITE_LOCAL_PATH": settings.navigation_write_local_path,
        "MARK_WRITE_LOCAL_PATH": settings.mark_write_local_path,
        "COVERAGE_WRITE_LOCAL_PATH": settings.coverage_write_local_path,
        "SCREENSHOT_FAILURE_LOCAL_PATH": settings.screenshot_failure_local_path,
        "SCREENSHOT_SUCCESS_LOCAL_PATH": settings.screenshot_success_local_path,
        "CONTENT_FAILURE_LOCAL_PATH": settings.content_failure_local_path,
        "CONTENT_SUCCESS_LOCAL_PATH": settings.content_success_local_path,
    }
    for name, path in local_paths.items():
        if path is None:
            continue
        add_check(
            name,
            _check_writable(path),
            detail=str(path),
            remedy=f"Create {path} or point {name} at a writable directory.",
        )

    if settings.proxy_disabled:
        add_check("PROXY", True, detail="Proxy disabled", level="info")
    else:
        add_check(
            "PROXY_HOST",
            bool(settings.proxy_host),
            detail=f"{settings.proxy_host}:{settings.proxy_port}" if settings.proxy_host else "No proxy host; crawling direct",
            remedy="Set PROXY_HOST/PROXY_PORT or PROXY_DISABLED=true.",
            level="info",
        )
        if settings.proxy_password:
            add_check("PROXY_PASSWORD", True, level="info", value=settings.proxy_password)

    return report


def format_doctor_report(report: Dict[str, Any]) -> str:
    lines: List[str] = []
    lines.append("tmcrawl doctor")
    lines.append(f"Generated: {report.get('generated_at')}")
    lines.append(f"Environment: {report.get('environment')}")
    lines.append("Values are redacted where applicable.")
    lines.append("")
    for check in report.get("checks", []):
        name = check.get("name", "check")
        status = check.get("status", "unknown")
        level = check.get("level", "info")
        detail = check.get("detail")
        value = check.get("value")
        label = f"{name}: {status}"
        if value:
            label = f"{label} ({value})"
        lines.append(f"- [{level}] {label}")
        if detail:
            lines.append(f"  detail: {detail}")
        remedy = check.get("remedy")
        if remedy:
            lines.append(f"  remedy: {remedy}")
    return "\n".join(lines).rstrip() + "\n"
