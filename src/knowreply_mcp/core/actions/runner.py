"""
Action runner: validation gates, execution, outcome normalization.
"""

from __future__ import annotations

import logging

from knowreply_mcp.core import envelope
from knowreply_mcp.core.errors import UpstreamError
from knowreply_mcp.core.validation import validate

from .base import ActionHandler
from .models import ActionContext, ActionRequest, ActionResult

logger = logging.getLogger(__name__)


async def run_action(handler: ActionHandler, request: ActionRequest, ctx: ActionContext) -> ActionResult:
    """
    Execute one action and return its normalized ActionResult.
    The connector is only reached once both args and credentials validated.
    """
    name = handler.name

    args = validate(handler.args_schema, request.args)
    if not args.ok:
        logger.warning("%s: invalid arguments %s", name, args.errors)
        return envelope.invalid_arguments(args.errors or {})

    auth = validate(handler.auth_schema, handler.credentials_from(request.auth))
    if not auth.ok:
        # field names only; values may be secrets
        logger.warning("%s: invalid auth fields %s", name, sorted(auth.errors or {}))
        return envelope.invalid_auth(auth.errors or {})

    logger.info("executing %s", name)
    try:
        out = await handler.execute(args.value, auth.value, ctx)
    except UpstreamError as exc:
        if exc.is_not_found:
            logger.info("%s: upstream reported not found", name)
            return handler.not_found_result(args.value)
        logger.error("%s: upstream failure kind=%s status=%s", name, exc.kind.value, exc.http_status)
        return envelope.upstream_failure(handler.service or name, exc)
    except Exception as exc:
        logger.exception("%s: unexpected error", name)
        return envelope.unexpected_failure(handler.task, exc)

    if isinstance(out, ActionResult):
        return out
    return envelope.success(out, handler.success_message)
