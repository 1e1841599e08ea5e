from datetime import datetime, timezone

import pytest

from roof_estimator.engine import Intake, PricingInput
from roof_estimator.engine.models import JobType
from roof_estimator.services.estimate_service import EstimateNotAllowed, EstimateService, LeadNotFound
from roof_estimator.services.rules_service import RulesService

from conftest import FakeSupabase, rule_rows

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def lead(status='intake_complete', **intake):
    return {
        'id': 'lead-1',
        'status': status,
        'intakes': [{
            'job_type': 'full_replacement',
            'roof_size_sqft': 2000,
            'roof_material': 'metal',
            'roof_pitch': 'steep',
            'stories': 1,
            **intake,
        }],
        'properties': {'street_address': '123 Main St', 'city': 'Tupelo', 'state': 'MS', 'zip_code': '38801'},
    }


@pytest.fixture
def db():
    return FakeSupabase({
        'pricing_rules': rule_rows(),
        'leads': [lead()],
        'estimates': [{'id': 'old', 'lead_id': 'lead-1', 'is_superseded': False, 'created_at': '2026-01-01'}],
    })


@pytest.fixture
def service(db):
    return EstimateService(lambda: db, RulesService(lambda: db), now=lambda: NOW)


def test_calculate_uses_stored_rules(service, db):
    db.tables['pricing_rules'] = [r for r in db.tables['pricing_rules'] if r['rule_key'] != 'min_repair']
    result = service.calculate(PricingInput(intake=Intake(job_type=JobType.REPAIR)))
    assert result.price_likely == 350
    assert len(result.rules_snapshot) == 21


def test_generate_for_lead(service, db):
    saved = service.generate_for_lead('lead-1')

    assert saved['lead_id'] == 'lead-1'
    assert saved['price_likely'] == 24750
    assert saved['price_low'] == 21038
    assert saved['price_high'] == 30938
    assert saved['is_superseded'] is False
    assert saved['valid_until'] == '2026-03-31T12:00:00+00:00'
    assert saved['input_snapshot']['property']['city'] == 'Tupelo'
    assert len(saved['pricing_rules_snapshot']) == 22

    estimates = {e['id']: e for e in db.tables['estimates']}
    assert estimates['old']['is_superseded'] is True
    assert db.tables['leads'][0]['status'] == 'estimate_generated'


def test_generate_for_unknown_lead(service):
    with pytest.raises(LeadNotFound):
        service.generate_for_lead('nope')


def test_generate_after_estimate_refused(service, db):
    db.tables['leads'][0]['status'] = 'estimate_generated'
    with pytest.raises(EstimateNotAllowed):
        service.generate_for_lead('lead-1')


def test_lead_without_intake_is_priced_with_defaults(service, db):
    db.tables['leads'][0]['intakes'] = []
    db.tables['leads'][0]['properties'] = None
    saved = service.generate_for_lead('lead-1')
    assert saved['price_likely'] == 350


def test_latest_for_lead(service, db):
    assert service.latest_for_lead('lead-1')['id'] == 'old'

    saved = service.generate_for_lead('lead-1')
    assert service.latest_for_lead('lead-1')['id'] == saved['id']
    assert service.latest_for_lead('someone-else') is None
