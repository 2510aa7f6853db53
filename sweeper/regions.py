"""Scope enumeration.

Scopes are listed once per run: the single global scope first, then every
region enabled for the account in sorted order.
"""

import logging
from typing import Any, Iterable, List, Optional

from botocore.exceptions import BotoCoreError, ClientError, NoCredentialsError

from sweeper.errors import FatalStartupError
from sweeper.models import Scope
from sweeper.utils.security import InputValidator, LogSanitizer

logger = logging.getLogger(__name__)


class RegionEnumerator:
    """Lists the scopes a sweep covers."""

    def __init__(self, client_manager: Any, regions: Optional[Iterable[str]] = None):
        """
        Initialize region enumerator.

        Args:
            client_manager: AWSClientManager for STS and EC2 in the home region
            regions: Optional subset of regions to sweep (empty means all enabled)
        """
        self.client_manager = client_manager
        self.regions = [r for r in (regions or []) if r]
        self._scopes: Optional[List[Scope]] = None

    def verify_credentials(self) -> str:
        """
        Confirm credentials work and return the account ID.

        Raises:
            FatalStartupError: If there are no usable credentials
        """
        try:
            account_id = self.client_manager.get_account_id()
        except NoCredentialsError as e:
            raise FatalStartupError(f"No AWS credentials available: {e}") from e
        except (ClientError, BotoCoreError) as e:
            raise FatalStartupError(
                f"Could not verify AWS credentials: {LogSanitizer.sanitize(str(e))}"
            ) from e

        validation = InputValidator.validate_account_id(account_id)
        if not validation.is_valid:
            raise FatalStartupError(f"Invalid account ID: {validation.errors}")
        return account_id

    def enabled_regions(self) -> List[str]:
        """
        Regions enabled for the account.

        Raises:
            FatalStartupError: If regions cannot be listed
        """
        try:
            response = self.client_manager.ec2.describe_regions(
                Filters=[{"Name": "opt-in-status", "Values": ["opt-in-not-required", "opted-in"]}]
            )
        except (ClientError, BotoCoreError) as e:
            raise FatalStartupError(
                f"Could not enumerate regions: {LogSanitizer.sanitize(str(e))}"
            ) from e
        return sorted(r["RegionName"] for r in response.get("Regions", []))

    def list_scopes(self) -> List[Scope]:
        """
        Global scope followed by each regional scope, sorted by region.

        The result is computed once and reused for the rest of the run.

        Raises:
            FatalStartupError: If regions cannot be listed
        """
        if self._scopes is not None:
            return list(self._scopes)

        enabled = self.enabled_regions()
        if self.regions:
            wanted = set(self.regions)
            for region in sorted(wanted - set(enabled)):
                logger.warning(f"Ignoring region {region}: not enabled for this account")
            enabled = [r for r in enabled if r in wanted]

        self._scopes = [Scope.GLOBAL] + [Scope.regional(r) for r in enabled]
        logger.info(f"Sweeping {len(enabled)} region(s): {', '.join(enabled) or 'none'}")
        return list(self._scopes)
