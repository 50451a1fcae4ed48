"""
Integration tests for the patient / provider / facility / payer registries,
including the CSV export → import round trip.
"""
import json

import pytest

from billing.models import Facility, Provider
from tests.conftest import ClaimFactory, FacilityFactory, PayerFactory, ProviderFactory


def post_json(api_client, url, payload):
    response = api_client.post(url, data=json.dumps(payload), content_type='application/json')
    return response.status_code, json.loads(response.content)


@pytest.mark.django_db
class TestPatients:

    def test_create_then_same_mrn_returns_existing(self, api_client):
        payload = {'mrn': '123456', 'first_name': 'Ana', 'last_name': 'Diaz', 'dob': '1980-05-02'}

        first_status, first = post_json(api_client, '/api/patients/', payload)
        second_status, second = post_json(api_client, '/api/patients/', payload)

        assert first_status == 201
        assert second_status == 200
        assert first['id'] == second['id']

    def test_missing_fields(self, api_client):
        status, body = post_json(api_client, '/api/patients/', {'mrn': '123456'})

        assert status == 400
        assert body['code'] == 'MISSING_REQUIRED_FIELDS'


@pytest.mark.django_db
class TestProviders:

    def test_npi_conflict_returns_409_block(self, api_client):
        ProviderFactory(npi='9999900001', first_name='Existing', last_name='Doctor')

        status, body = post_json(api_client, '/api/providers/', {
            'first_name': 'Different', 'last_name': 'Doctor', 'npi': '9999900001',
        })

        assert status == 409
        assert body['type'] == 'block'
        assert body['code'] == 'NPI_CONFLICT'
        assert 'Existing Doctor' in body['message']
        assert Provider.objects.count() == 1

    def test_invalid_npi(self, api_client):
        status, body = post_json(api_client, '/api/providers/', {
            'first_name': 'Sam', 'last_name': 'Lee', 'npi': '12345',
        })

        assert status == 400
        assert body['code'] == 'INVALID_NPI'

    def test_export_then_import(self, api_client):
        ProviderFactory(npi='1111111111', first_name='Ada', last_name='Lovelace', phone='555-0100')

        export = api_client.get('/api/providers/export/')
        assert export.status_code == 200
        assert export['Content-Type'].startswith('text/csv')
        assert 'attachment; filename="providers.csv"' == export['Content-Disposition']

        Provider.objects.all().delete()
        response = api_client.post('/api/providers/import/', data=export.content, content_type='text/csv')

        body = json.loads(response.content)
        assert response.status_code == 200
        assert body == {'imported': 1, 'failed': 0, 'errors': []}
        assert Provider.objects.get(npi='1111111111').phone == '555-0100'

    def test_import_reports_bad_rows(self, api_client):
        csv_body = (
            'First Name,Last Name,NPI\n'
            'Ada,Lovelace,1111111111\n'
            'Bad,Row,12\n'
        )

        response = api_client.post('/api/providers/import/', data=csv_body, content_type='text/csv')

        body = json.loads(response.content)
        assert body['imported'] == 1
        assert body['failed'] == 1
        assert body['errors'][0] == {'line': 3, 'code': 'INVALID_NPI', 'message': 'NPI must be exactly 10 digits.'}

    def test_import_missing_columns(self, api_client):
        response = api_client.post('/api/providers/import/', data='Name\nAda\n', content_type='text/csv')

        body = json.loads(response.content)
        assert response.status_code == 400
        assert body['code'] == 'CSV_MISSING_COLUMNS'


@pytest.mark.django_db
class TestFacilities:

    def test_address_with_comma_survives_round_trip(self, api_client):
        FacilityFactory(name='Lakeside Clinic', address='12 Main St, Suite 4')

        export = api_client.get('/api/facilities/export/')
        Facility.objects.all().delete()
        api_client.post('/api/facilities/import/', data=export.content, content_type='text/csv')

        assert Facility.objects.get(name='Lakeside Clinic').address == '12 Main St, Suite 4'


@pytest.mark.django_db
class TestPayers:

    def test_payer_in_use_cannot_be_deleted(self, api_client):
        payer = PayerFactory()
        ClaimFactory(primary_payer=payer)

        response = api_client.delete(f'/api/payers/{payer.id}/')

        body = json.loads(response.content)
        assert response.status_code == 409
        assert body['code'] == 'PAYER_IN_USE'

    def test_filter_by_type(self, api_client):
        PayerFactory(name='Medicare', payer_type='medicare')
        PayerFactory(name='Blue Cross')

        body = json.loads(api_client.get('/api/payers/?type=medicare').content)

        assert [p['name'] for p in body['payers']] == ['Medicare']
