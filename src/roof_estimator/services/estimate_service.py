"""
Estimate Service - Runs the pricing engine for leads and stores the results.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from supabase import Client

from ..engine import Intake, Property, PricingInput, PricingResult
from .rules_service import RulesService

logger = logging.getLogger(__name__)

# Lead statuses that may still receive a generated estimate
ESTIMATE_ALLOWED_STATUSES = ('new', 'in_progress', 'contacted', 'intake_complete')
ESTIMATE_VALID_DAYS = 30


class LeadNotFound(LookupError):
    """Raised when a lead ID does not exist."""


class EstimateNotAllowed(ValueError):
    """Raised when a lead is past the point of generating an estimate."""


def _first(value):
    """Related rows may come back as a list or a single object."""
    if isinstance(value, list):
        return value[0] if value else None
    return value


class EstimateService:
    """Service for calculating and storing estimates."""

    def __init__(
        self,
        client_factory: Callable[[], Client],
        rules_service: RulesService,
        now: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self._client_factory = client_factory
        self.rules_service = rules_service
        self._now = now

    @property
    def client(self) -> Client:
        return self._client_factory()

    def calculate(self, pricing_input: PricingInput) -> PricingResult:
        """Price an intake against the currently active rule set."""
        return self.rules_service.build_engine().calculate(pricing_input)

    def generate_for_lead(self, lead_id: str) -> dict:
        """
        Calculate and save a new estimate for a lead.

        Earlier estimates are marked superseded and the lead moves to
        ``estimate_generated``.
        """
        response = (
            self.client.table('leads')
            .select('*, intakes(*), properties(*)')
            .eq('id', lead_id)
            .limit(1)
            .execute()
        )
        if not response.data:
            raise LeadNotFound(f"Lead '{lead_id}' not found")
        lead = response.data[0]

        status = lead.get('status')
        if status and status not in ESTIMATE_ALLOWED_STATUSES:
            raise EstimateNotAllowed("Estimate already generated for this lead")

        intake = _first(lead.get('intakes'))
        prop = _first(lead.get('properties'))
        result = self.calculate(PricingInput(
            intake=Intake.from_dict(intake),
            property=Property.from_dict(prop) if prop else None,
        ))

        (
            self.client.table('estimates')
            .update({'is_superseded': True})
            .eq('lead_id', lead_id)
            .eq('is_superseded', False)
            .execute()
        )

        valid_until = self._now() + timedelta(days=ESTIMATE_VALID_DAYS)
        saved = self.client.table('estimates').insert({
            'lead_id': lead_id,
            **result.to_estimate_row(),
            'is_superseded': False,
            'valid_until': valid_until.isoformat(),
        }).execute().data[0]

        self.client.table('leads').update({'status': 'estimate_generated'}).eq('id', lead_id).execute()
        logger.info(
            "Estimate for lead %s: %s / %s / %s",
            lead_id, result.price_low, result.price_likely, result.price_high,
        )
        return saved

    def latest_for_lead(self, lead_id: str) -> Optional[dict]:
        """Most recent estimate that has not been superseded."""
        response = (
            self.client.table('estimates')
            .select('*')
            .eq('lead_id', lead_id)
            .eq('is_superseded', False)
            .order('created_at', desc=True)
            .limit(1)
            .execute()
        )
        return response.data[0] if response.data else None
