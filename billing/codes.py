"""
CPT / ICD-10 code catalogue shown by the services and diagnosis steps.

Search is a case-insensitive substring match on code or description.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Optional


@dataclass(frozen=True)
class CptCode:
    code: str
    description: str
    amount: Decimal


@dataclass(frozen=True)
class IcdCode:
    code: str
    description: str


CPT_CODES = (
    CptCode('99212', 'Office visit, established patient', Decimal('180.00')),
    CptCode('99213', 'Office visit, established patient', Decimal('200.00')),
    CptCode('99214', 'Office visit, established patient', Decimal('320.00')),
    CptCode('99215', 'Office visit, established patient', Decimal('500.00')),
    CptCode('36415', 'Blood draw', Decimal('250.00')),
    CptCode('93000', 'Electrocardiogram', Decimal('250.00')),
    CptCode('80053', 'Comprehensive metabolic panel', Decimal('150.00')),
    CptCode('85025', 'Complete blood count', Decimal('100.00')),
)

ICD_CODES = (
    IcdCode('I10', 'Essential hypertension'),
    IcdCode('E11.9', 'Type 2 diabetes mellitus without complications'),
    IcdCode('Z00.00', 'Encounter for general adult medical examination'),
    IcdCode('M79.3', 'Panniculitis, unspecified'),
    IcdCode('I25.10', 'Atherosclerotic heart disease of native coronary artery without angina pectoris'),
    IcdCode('J06.9', 'Acute upper respiratory infection, unspecified'),
    IcdCode('K21.9', 'Gastro-esophageal reflux disease without esophagitis'),
    IcdCode('M25.561', 'Pain in right knee'),
)

_CPT_BY_CODE = {c.code: c for c in CPT_CODES}
_ICD_BY_CODE = {c.code.upper(): c for c in ICD_CODES}


def _matches(term, *fields):
    needle = (term or '').strip().lower()
    return not needle or any(needle in f.lower() for f in fields)


def search_cpt_codes(term: str = '') -> list[CptCode]:
    return [c for c in CPT_CODES if _matches(term, c.code, c.description)]


def search_icd_codes(term: str = '') -> list[IcdCode]:
    return [c for c in ICD_CODES if _matches(term, c.code, c.description)]


def lookup_cpt(code: str) -> Optional[CptCode]:
    return _CPT_BY_CODE.get((code or '').strip())


def lookup_icd(code: str) -> Optional[IcdCode]:
    return _ICD_BY_CODE.get((code or '').strip().upper())
