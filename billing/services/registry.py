"""
Provider / facility / payer registries.

Same shape for all three: search → create (required fields) → update → delete.
Providers and facilities also export to CSV and bulk-import from it; a bulk
import keeps every row that succeeded and reports the rows that did not.
"""
import csv
import io
import logging

from django.db.models import Q

from ..exceptions import BaseAppException, BlockError, ValidationError
from ..intake import get_adapter
from ..intake.base import NPI_RE
from ..models import Facility, Payer, Provider
from .common import apply_updates, get_or_404, require_fields

logger = logging.getLogger(__name__)

PROVIDER_FIELDS = (
    'first_name', 'last_name', 'npi', 'credentials', 'taxonomy_specialty', 'phone', 'email', 'status',
)
FACILITY_FIELDS = (
    'name', 'npi', 'address', 'city', 'state', 'zip_code', 'phone', 'tax_id', 'place_of_service', 'status',
)
PAYER_FIELDS = ('name', 'plan_name', 'payer_type', 'payer_id', 'phone', 'address', 'status')

PROVIDER_CSV_HEADER = ['First Name', 'Last Name', 'NPI', 'Credentials', 'Specialty', 'Status', 'Phone', 'Email']
FACILITY_CSV_HEADER = [
    'Name', 'NPI', 'Address', 'City', 'State', 'Zip Code', 'Phone', 'Tax ID', 'Place of Service', 'Status',
]


def _clean(data, fields):
    return {name: str(data[name]).strip() for name in fields if data.get(name) not in (None, '')}


def _check_status(data, choices):
    status = data.get('status')
    if status and status not in dict(choices):
        raise ValidationError(
            message=f"Invalid status {status!r}.",
            code='INVALID_STATUS',
            detail={'allowed': list(dict(choices))},
        )


# ── Providers ──────────────────────────────────────────────────────────────

def check_provider_duplicate(provider_data):
    """
    Provider 重复检测。
    - NPI 相同 + 名字相同 → 返回现有 provider
    - NPI 相同 + 名字不同 → 阻止 (409)
    - 不存在 → 返回 None
    """
    npi = provider_data['npi']
    name = f"{provider_data['first_name']} {provider_data['last_name']}"

    try:
        existing = Provider.objects.get(npi=npi)
    except Provider.DoesNotExist:
        return None

    if existing.full_name == name:
        return existing

    raise BlockError(
        message=(
            f"NPI {npi} is already registered to '{existing.full_name}' and cannot be used for '{name}'. "
            f"An NPI is a unique national identifier; please verify it."
        ),
        code='NPI_CONFLICT',
        detail={'npi': npi, 'existing_name': existing.full_name, 'submitted_name': name},
    )


def create_provider(data):
    """Returns (provider, created)."""
    require_fields(data, ('first_name', 'last_name', 'npi'))
    values = _clean(data, PROVIDER_FIELDS)
    if not NPI_RE.match(values['npi']):
        raise ValidationError(
            message='NPI must be exactly 10 digits.',
            code='INVALID_NPI',
            detail={'npi': values['npi']},
        )
    _check_status(values, Provider.STATUS_CHOICES)

    existing = check_provider_duplicate(values)
    if existing is not None:
        return existing, False

    provider = Provider.objects.create(**values)
    logger.info("[Registry] created provider id=%s npi=%s", provider.id, provider.npi)
    return provider, True


def get_provider(provider_id):
    return get_or_404(Provider, provider_id, 'Provider')


def update_provider(provider_id, data):
    provider = get_provider(provider_id)
    _check_status(data, Provider.STATUS_CHOICES)
    if 'npi' in data and data['npi'] != provider.npi:
        if not NPI_RE.match(str(data['npi'])):
            raise ValidationError(message='NPI must be exactly 10 digits.', code='INVALID_NPI')
        if Provider.objects.filter(npi=data['npi']).exclude(id=provider.id).exists():
            raise BlockError(
                message=f"NPI {data['npi']} is already registered to another provider.",
                code='NPI_CONFLICT',
                detail={'npi': data['npi']},
            )
    return apply_updates(provider, data, PROVIDER_FIELDS)


def delete_provider(provider_id):
    get_provider(provider_id).delete()


def search_providers(query, status=None):
    providers = Provider.objects.all()
    query = (query or '').strip()
    if query:
        providers = providers.filter(
            Q(first_name__icontains=query) |
            Q(last_name__icontains=query) |
            Q(npi__icontains=query) |
            Q(taxonomy_specialty__icontains=query)
        )
    if status:
        providers = providers.filter(status=status)
    return providers.order_by('last_name', 'first_name')


# ── Facilities ─────────────────────────────────────────────────────────────

def create_facility(data):
    require_fields(data, ('name',))
    values = _clean(data, FACILITY_FIELDS)
    if values.get('npi') and not NPI_RE.match(values['npi']):
        raise ValidationError(message='NPI must be exactly 10 digits.', code='INVALID_NPI')
    _check_status(values, Facility.STATUS_CHOICES)
    facility = Facility.objects.create(**values)
    logger.info("[Registry] created facility id=%s name=%s", facility.id, facility.name)
    return facility


def get_facility(facility_id):
    return get_or_404(Facility, facility_id, 'Facility')


def update_facility(facility_id, data):
    facility = get_facility(facility_id)
    _check_status(data, Facility.STATUS_CHOICES)
    return apply_updates(facility, data, FACILITY_FIELDS)


def delete_facility(facility_id):
    get_facility(facility_id).delete()


def search_facilities(query, status=None):
    facilities = Facility.objects.all()
    query = (query or '').strip()
    if query:
        facilities = facilities.filter(
            Q(name__icontains=query) |
            Q(npi__icontains=query) |
            Q(city__icontains=query)
        )
    if status:
        facilities = facilities.filter(status=status)
    return facilities.order_by('name')


# ── Payers ─────────────────────────────────────────────────────────────────

def create_payer(data):
    require_fields(data, ('name',))
    values = _clean(data, PAYER_FIELDS)
    if values.get('payer_type') and values['payer_type'] not in dict(Payer.TYPE_CHOICES):
        raise ValidationError(
            message=f"Invalid payer type {values['payer_type']!r}.",
            code='INVALID_PAYER_TYPE',
            detail={'allowed': list(dict(Payer.TYPE_CHOICES))},
        )
    _check_status(values, Payer.STATUS_CHOICES)
    payer = Payer.objects.create(**values)
    logger.info("[Registry] created payer id=%s name=%s", payer.id, payer.name)
    return payer


def get_payer(payer_id):
    return get_or_404(Payer, payer_id, 'Payer')


def update_payer(payer_id, data):
    payer = get_payer(payer_id)
    _check_status(data, Payer.STATUS_CHOICES)
    return apply_updates(payer, data, PAYER_FIELDS)


def delete_payer(payer_id):
    payer = get_payer(payer_id)
    if payer.primary_claims.exists():
        raise BlockError(
            message=f"Payer '{payer.name}' is referenced by claims and cannot be deleted.",
            code='PAYER_IN_USE',
            detail={'payer_id': str(payer.id)},
        )
    payer.delete()


def search_payers(query, payer_type=None):
    payers = Payer.objects.all()
    query = (query or '').strip()
    if query:
        payers = payers.filter(
            Q(name__icontains=query) |
            Q(plan_name__icontains=query) |
            Q(payer_id__icontains=query)
        )
    if payer_type:
        payers = payers.filter(payer_type=payer_type)
    return payers.order_by('name')


# ── CSV export / import ────────────────────────────────────────────────────

def _to_csv(header, rows):
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator='\n')
    writer.writerow(header)
    writer.writerows(rows)
    return buffer.getvalue()


def export_providers_csv(providers=None):
    providers = providers if providers is not None else search_providers('')
    return _to_csv(PROVIDER_CSV_HEADER, (
        [p.first_name, p.last_name, p.npi, p.credentials, p.taxonomy_specialty, p.status, p.phone, p.email]
        for p in providers
    ))


def export_facilities_csv(facilities=None):
    facilities = facilities if facilities is not None else search_facilities('')
    return _to_csv(FACILITY_CSV_HEADER, (
        [f.name, f.npi, f.address, f.city, f.state, f.zip_code, f.phone, f.tax_id, f.place_of_service, f.status]
        for f in facilities
    ))


def _import_rows(source, raw_body, create):
    rows = get_adapter(source, raw_body, 'text/csv').process()
    result = {'imported': 0, 'failed': 0, 'errors': []}

    for row in rows:
        try:
            create(row.data)
        except BaseAppException as exc:
            result['failed'] += 1
            result['errors'].append({'line': row.line_number, 'code': exc.code, 'message': exc.message})
        else:
            result['imported'] += 1

    logger.info(
        "[Registry] %s import finished: %d imported, %d failed",
        source, result['imported'], result['failed'],
    )
    return result


def import_providers_csv(raw_body):
    return _import_rows('providers_csv', raw_body, create_provider)


def import_facilities_csv(raw_body):
    return _import_rows('facilities_csv', raw_body, create_facility)
