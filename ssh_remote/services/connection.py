"""Resolution helper with prompted retry."""

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

from ssh_remote.errors import ResolverError
from ssh_remote.models import ResolvedAuthority
from ssh_remote.services.resolver import RemoteSSHResolver

if TYPE_CHECKING:
    from ssh_remote.dependencies import Dependencies

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 3


async def resolve_with_retry(
    deps: "Dependencies",
    authority: str,
    first_attempt: int = 1,
    max_attempts: int = MAX_ATTEMPTS,
    resolver_factory: Callable[["Dependencies"], RemoteSSHResolver] = RemoteSSHResolver,
) -> tuple[RemoteSSHResolver, ResolvedAuthority]:
    """Resolve an authority, retrying transient failures.

    Each attempt runs on a fresh resolver. When the first attempt fails
    with a retryable error the user is asked whether to retry; later
    attempts retry without asking until ``max_attempts`` is reached.
    Permanent failures are raised straight away.

    Args:
        deps: Resolver dependencies (the prompt is used for the retry question)
        authority: ``ssh-remote+[user@]host[:port]``
        first_attempt: Attempt number to start counting from
        max_attempts: Last attempt number that will be tried

    Returns:
        The live resolver (owning the session) and its resolved endpoint

    Raises:
        ResolverError: If resolution fails permanently or retries run out
    """
    attempt = first_attempt
    while True:
        resolver = resolver_factory(deps)
        try:
            resolved = await resolver.resolve(authority, attempt)
        except ResolverError as e:
            if not e.retryable or attempt >= max_attempts:
                raise
            if attempt == 1:
                confirmed = await deps.prompt.confirm_retry(
                    f"Could not establish connection to {authority}: {e}"
                )
                if not confirmed:
                    raise
            logger.warning("Attempt #%d for %s failed: %s, retrying", attempt, authority, e)
            attempt += 1
            continue

        if attempt > first_attempt:
            logger.info("Retry for %s succeeded on attempt #%d", authority, attempt)
        return resolver, resolved
