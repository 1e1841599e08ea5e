"""
Settings Service - Reads and writes the single-row business settings table.

The API works with nested sections (company, address, hours, pricing,
notifications); the table stores them as flat ``<section>_<field>`` columns.
"""
import copy
import logging
from typing import Callable, Optional

from postgrest.exceptions import APIError
from supabase import Client

from .cache import BUSINESS_CONFIG_TAG, TaggedCache, business_cache

logger = logging.getLogger(__name__)

SETTINGS_ROW_ID = 1

# Error codes meaning "no settings row" / "no settings table"
MISSING_SETTINGS_CODES = ('PGRST116', '42P01')

SECTIONS: dict[str, tuple[str, ...]] = {
    'company': ('name', 'legal_name', 'tagline', 'phone', 'email', 'website'),
    'address': ('street', 'city', 'state', 'zip'),
    'hours': (
        'weekdays_open', 'weekdays_close', 'saturday_open', 'saturday_close',
        'sunday_open', 'sunday_close', 'emergency_available',
    ),
    'pricing': ('overhead_percent', 'profit_margin_percent', 'tax_rate'),
    'notifications': ('new_lead_email', 'estimate_email', 'daily_digest', 'email_recipients'),
}

DEFAULT_SETTINGS = {
    'company': {
        'name': 'Farrell Roofing',
        'legal_name': 'Farrell Roofing LLC',
        'tagline': "Northeast Mississippi's Trusted Roofing Experts",
        'phone': '(662) 555-0123',
        'email': 'info@smartroofpricing.com',
        'website': None,
    },
    'address': {
        'street': '123 Main Street',
        'city': 'Tupelo',
        'state': 'MS',
        'zip': '38801',
    },
    'hours': {
        'weekdays_open': '07:00',
        'weekdays_close': '18:00',
        'saturday_open': '08:00',
        'saturday_close': '14:00',
        'sunday_open': '',
        'sunday_close': '',
        'emergency_available': True,
    },
    'pricing': {
        'overhead_percent': 15,
        'profit_margin_percent': 20,
        'tax_rate': 7,
    },
    'notifications': {
        'new_lead_email': True,
        'estimate_email': True,
        'daily_digest': False,
        'email_recipients': ['admin@smartroofpricing.com'],
    },
    'lead_sources': [
        {'id': 'web_funnel', 'name': 'Web Funnel', 'enabled': True},
        {'id': 'google', 'name': 'Google Ads', 'enabled': True},
        {'id': 'facebook', 'name': 'Facebook', 'enabled': True},
        {'id': 'referral', 'name': 'Referral', 'enabled': True},
        {'id': 'phone', 'name': 'Phone Call', 'enabled': True},
        {'id': 'walk_in', 'name': 'Walk In', 'enabled': False},
    ],
}


def row_to_settings(row: dict) -> dict:
    """Transform a settings row into the nested API shape."""
    settings = {
        section: {name: row.get(f"{section}_{name}") for name in fields}
        for section, fields in SECTIONS.items()
    }
    settings['lead_sources'] = row.get('lead_sources') or []
    return settings


def settings_to_row(data: dict) -> dict:
    """Flatten the provided parts of a nested settings payload into columns."""
    row = {}
    for section, fields in SECTIONS.items():
        values = data.get(section)
        if not values:
            continue
        for name in fields:
            if name in values:
                row[f"{section}_{name}"] = values[name]

    # The state is entered as an abbreviation, keep the code column in sync
    if 'address_state' in row:
        row['address_state_code'] = row['address_state']

    if 'lead_sources' in data:
        row['lead_sources'] = data['lead_sources']
    return row


class SettingsService:
    """Service for the business settings row."""

    TABLE = 'settings'

    def __init__(self, client_factory: Callable[[], Client], cache: Optional[TaggedCache] = None):
        self._client_factory = client_factory
        self.cache = cache or business_cache

    @property
    def client(self) -> Client:
        return self._client_factory()

    def get_settings(self) -> dict:
        """Read settings, falling back to defaults when nothing is stored."""
        try:
            response = (
                self.client.table(self.TABLE)
                .select('*')
                .eq('id', SETTINGS_ROW_ID)
                .limit(1)
                .execute()
            )
        except APIError as e:
            if e.code in MISSING_SETTINGS_CODES:
                logger.info("Settings not stored yet (%s), using defaults", e.code)
                return copy.deepcopy(DEFAULT_SETTINGS)
            raise

        if not response.data:
            return copy.deepcopy(DEFAULT_SETTINGS)
        return row_to_settings(response.data[0])

    def update_settings(self, data: dict) -> dict:
        """Upsert only the provided fields and invalidate cached configuration."""
        row = settings_to_row(data)
        response = (
            self.client.table(self.TABLE)
            .upsert({'id': SETTINGS_ROW_ID, **row}, on_conflict='id')
            .execute()
        )
        self.cache.invalidate(BUSINESS_CONFIG_TAG)
        logger.info("Updated settings columns: %s", ', '.join(sorted(row)) or '(none)')
        return row_to_settings(response.data[0] if response.data else {'id': SETTINGS_ROW_ID, **row})

    def get_business_config(self) -> dict:
        """Cached settings for read-mostly callers."""
        return self.cache.get_or_load(BUSINESS_CONFIG_TAG, self.get_settings)
