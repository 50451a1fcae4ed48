import logging

from django.db.models import Q

from ..exceptions import ValidationError, WarningError
from ..intake.base import MRN_RE
from ..models import Patient
from .common import apply_updates, get_or_404, parse_date, require_fields

logger = logging.getLogger(__name__)

PATIENT_FIELDS = ('mrn', 'first_name', 'last_name', 'dob')
CONTACT_FIELDS = ('email', 'phone', 'address', 'preferred_channel')
EDITABLE_FIELDS = ('first_name', 'last_name', *CONTACT_FIELDS)


def check_patient_duplicate(patient_data):
    """
    Patient 重复检测。返回 (patient_or_None, warnings_list)。
    - MRN 相同 + 名字和DOB都相同 → 复用现有
    - MRN 相同 + 名字或DOB不同 → 收集警告
    - 名字+DOB 相同 + MRN 不同 → 收集警告
    """
    mrn = patient_data['mrn']
    first_name = patient_data['first_name']
    last_name = patient_data['last_name']
    dob = parse_date(patient_data['dob'], 'dob')

    warnings = []

    try:
        existing = Patient.objects.get(mrn=mrn)
        name_match = (existing.first_name == first_name and existing.last_name == last_name)
        dob_match = (existing.dob == dob)

        if name_match and dob_match:
            return existing, warnings

        diffs = []
        if not name_match:
            diffs.append(f"name: on file='{existing.full_name}', submitted='{first_name} {last_name}'")
        if not dob_match:
            diffs.append(f"DOB: on file='{existing.dob}', submitted='{dob}'")
        warnings.append({
            'code': 'MRN_INFO_MISMATCH',
            'message': f"MRN {mrn} already exists with different details: {'; '.join(diffs)}. "
                       f"The existing patient record will be used.",
        })
        return existing, warnings

    except Patient.DoesNotExist:
        pass

    matched = Patient.objects.filter(first_name=first_name, last_name=last_name, dob=dob).first()
    if matched is not None:
        warnings.append({
            'code': 'POSSIBLE_DUPLICATE_PATIENT',
            'message': (
                f"Patient '{first_name} {last_name}' (DOB: {dob}) already exists with MRN={matched.mrn}, "
                f"but this submission uses MRN={mrn}. A new patient record will be created."
            ),
        })

    return None, warnings


def create_patient(data):
    """
    Register a patient. Returns (patient, created).
    Raises ValidationError on bad input, WarningError when a possible duplicate
    needs confirm=true.
    """
    require_fields(data, PATIENT_FIELDS)
    if not MRN_RE.match(str(data['mrn'])):
        raise ValidationError(
            message='MRN must be exactly 6 digits.',
            code='INVALID_MRN',
            detail={'mrn': str(data['mrn'])},
        )

    patient, warnings = check_patient_duplicate(data)
    if warnings and not data.get('confirm', False):
        raise WarningError.from_warnings(
            'Possible duplicate patient. Re-submit with confirm=true to continue.',
            warnings,
        )

    if patient is not None:
        logger.info("[Patients] reusing patient id=%s mrn=%s", patient.id, patient.mrn)
        return patient, False

    patient = Patient.objects.create(
        mrn=data['mrn'],
        first_name=data['first_name'].strip(),
        last_name=data['last_name'].strip(),
        dob=parse_date(data['dob'], 'dob'),
        **{name: data[name] for name in CONTACT_FIELDS if data.get(name)},
    )
    logger.info("[Patients] created patient id=%s mrn=%s", patient.id, patient.mrn)
    return patient, True


def get_patient(patient_id):
    return get_or_404(Patient, patient_id, 'Patient')


def update_patient(patient_id, data):
    patient = get_patient(patient_id)
    return apply_updates(patient, data, EDITABLE_FIELDS)


def delete_patient(patient_id):
    patient = get_patient(patient_id)
    logger.info("[Patients] deleting patient id=%s", patient.id)
    patient.delete()


def search_patients(query, limit=50):
    """Substring search on MRN, first and last name."""
    query = (query or '').strip()
    patients = Patient.objects.all()
    if query:
        patients = patients.filter(
            Q(mrn__icontains=query) |
            Q(first_name__icontains=query) |
            Q(last_name__icontains=query)
        )
    return patients.order_by('last_name', 'first_name')[:limit]
