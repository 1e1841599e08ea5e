import json

import pytest

from roof_estimator.engine import DEFAULT_PRICING_RULES, PricingEngine
from roof_estimator.engine.models import JobType, RoofIssue, RoofMaterial, RoofPitch, TimelineUrgency
from roof_estimator.funnel.store import (
    Address,
    FunnelStore,
    MAX_PHOTOS,
    STORAGE_KEY,
    UploadedPhoto,
)


@pytest.fixture
def storage():
    return {}


@pytest.fixture
def store(storage):
    return FunnelStore(storage)


def address():
    return Address(street_address='123 Main St', city='Tupelo', state='MS', zip_code='38801')


def test_starts_empty(store):
    assert store.state.current_step == 1
    assert store.state.issues == []
    assert store.state.stories == 1


def test_step_navigation_is_clamped(store):
    store.prev_step()
    assert store.state.current_step == 1
    for _ in range(10):
        store.next_step()
    assert store.state.current_step == 4


def test_jump_to_step_is_clamped(store):
    store.set_current_step(9)
    assert store.state.current_step == 4
    store.set_current_step(0)
    assert store.state.current_step == 1
    store.set_current_step(3)
    assert store.state.current_step == 3


def test_answers_survive_reload(store, storage):
    store.set_address(address())
    store.set_job_type(JobType.FULL_REPLACEMENT)
    store.set_roof_details(roof_material=RoofMaterial.METAL, roof_size_sqft=1800, stories=2)
    store.toggle_issue(RoofIssue.LEAKS)
    store.set_timeline(timeline_urgency=TimelineUrgency.ASAP)
    store.next_step()

    reloaded = FunnelStore(storage).state
    assert reloaded.address == address()
    assert reloaded.job_type is JobType.FULL_REPLACEMENT
    assert reloaded.roof_material is RoofMaterial.METAL
    assert reloaded.roof_size_sqft == 1800
    assert reloaded.stories == 2
    assert reloaded.issues == [RoofIssue.LEAKS]
    assert reloaded.timeline_urgency is TimelineUrgency.ASAP
    assert reloaded.current_step == 2


def test_transient_fields_not_persisted(store, storage):
    store.set_share_token('abc')
    store.set_loading(True)
    store.set_error('oops')
    store.set_estimate(PricingEngine(DEFAULT_PRICING_RULES).calculate(store.to_pricing_input()))

    persisted = json.loads(storage[STORAGE_KEY])
    for name in ('share_token', 'is_loading', 'error', 'estimate'):
        assert name not in persisted

    reloaded = FunnelStore(storage).state
    assert reloaded.share_token is None
    assert reloaded.estimate is None


def test_photo_files_not_persisted(store, storage):
    store.add_photo(UploadedPhoto(id='p1', preview_url='blob:1', file=object()))
    store.update_photo('p1', status='uploaded', storage_path='leads/p1.jpg')

    photo = json.loads(storage[STORAGE_KEY])['photos'][0]
    assert 'file' not in photo
    assert photo['status'] == 'uploaded'
    assert photo['storage_path'] == 'leads/p1.jpg'

    store.remove_photo('p1')
    assert store.state.photos == []


def test_photo_limit(store):
    for i in range(MAX_PHOTOS + 2):
        store.add_photo(UploadedPhoto(id=f"p{i}", preview_url=f"blob:{i}"))
    assert len(store.state.photos) == MAX_PHOTOS
    assert store.state.photos[-1].id == f"p{MAX_PHOTOS - 1}"


def test_toggle_issue(store):
    store.toggle_issue(RoofIssue.LEAKS)
    store.toggle_issue(RoofIssue.SAGGING)
    store.toggle_issue(RoofIssue.LEAKS)
    assert store.state.issues == [RoofIssue.SAGGING]


def test_roof_details_keep_unset_answers(store):
    store.set_roof_details(roof_material=RoofMaterial.TILE, roof_pitch=RoofPitch.STEEP, roof_size_sqft=2200)
    store.set_roof_details(stories=3, roof_material=None)
    assert store.state.roof_material is RoofMaterial.TILE
    assert store.state.roof_size_sqft == 2200

    store.set_roof_details(roof_size_sqft=None)
    assert store.state.roof_size_sqft is None


def test_contact_method_validated(store):
    store.set_contact(first_name='Pat', preferred_contact_method='email')
    assert store.state.first_name == 'Pat'
    assert store.state.preferred_contact_method == 'email'

    with pytest.raises(ValueError):
        store.set_contact(preferred_contact_method='fax')


def test_unreadable_storage_starts_fresh(storage):
    storage[STORAGE_KEY] = '{not json'
    assert FunnelStore(storage).state.current_step == 1


def test_unknown_stored_values_are_dropped(storage):
    storage[STORAGE_KEY] = json.dumps({
        'job_type': 'roof_painting',
        'issues': ['leaks', 'gremlins'],
        'current_step': 3,
        'legacy_field': True,
    })
    state = FunnelStore(storage).state
    assert state.job_type is None
    assert state.issues == [RoofIssue.LEAKS]
    assert state.current_step == 3


def test_save_failure_is_reported_not_raised(store):
    store.state.job_description = object()
    assert store.save() is False


def test_reset(store, storage):
    store.set_job_type(JobType.REPAIR)
    store.reset()
    assert store.state.job_type is None
    assert FunnelStore(storage).state.job_type is None


def test_pricing_from_answers(store):
    store.set_address(address())
    store.set_job_type(JobType.FULL_REPLACEMENT)
    store.set_roof_details(roof_material=RoofMaterial.METAL, roof_pitch=RoofPitch.STEEP, roof_size_sqft=2000)

    pricing_input = store.to_pricing_input()
    assert pricing_input.property.city == 'Tupelo'
    assert pricing_input.intake.roof_material is RoofMaterial.METAL

    result = PricingEngine(DEFAULT_PRICING_RULES).calculate(pricing_input)
    store.set_estimate(result)
    assert store.state.estimate['price_likely'] == 24750
    assert [f['name'] for f in store.state.estimate['factors']] == [
        'Full Replacement Base', 'Metal Roofing', 'Steep Pitch',
    ]
