import logging

import requests

logger = logging.getLogger(__name__)


class PreFlightCheckError(Exception):
    """Custom exception for pre-flight check failures."""
    pass


def run_confluence_pre_flight_checks(client) -> None:
    """
    Verifies that the Confluence credentials and target space are usable
    before any page is created.

    Args:
        client: A :class:`ConfluenceClient` built from the import configuration.

    Raises:
        PreFlightCheckError: If any check fails.
    """
    logger.info("Running pre-flight checks...")

    if not client.cfg.api_token:
        raise PreFlightCheckError("Confluence API token not found in the configuration.")

    # Check 1: credentials
    try:
        client.current_user()
    except requests.HTTPError as e:
        if e.response is not None and e.response.status_code in (401, 403):
            raise PreFlightCheckError("The Confluence credentials are invalid or expired.") from e
        raise PreFlightCheckError(f"Unexpected error while checking the current user: {e}") from e
    except requests.RequestException as e:
        raise PreFlightCheckError(f"Network error while connecting to Confluence: {e}") from e

    # Check 2: space
    space_key = client.cfg.space_key
    try:
        client.get_space(space_key)
    except requests.HTTPError as e:
        if e.response is not None and e.response.status_code == 404:
            raise PreFlightCheckError(f"Space '{space_key}' does not exist or is not visible to this user.") from e
        raise PreFlightCheckError(f"Unexpected error while checking space '{space_key}': {e}") from e
    except requests.RequestException as e:
        raise PreFlightCheckError(f"Network error while checking space '{space_key}': {e}") from e

    logger.info("Pre-flight checks passed successfully.")
