"""
Integration tests for the scheduling HTTP API.

These exercise login, booking, conflict reporting, role based access
and the status endpoints through DRF's APIClient, using the real
bearer token flow.
"""
from datetime import timedelta

from django.core.cache import cache
from django.urls import reverse
from django.utils import timezone
from django.utils.dateparse import parse_datetime
from rest_framework import status
from rest_framework.test import APITestCase
from rest_framework.throttling import ScopedRateThrottle

from scheduling.models import Appointment, AppointmentStatus, Role, User
from scheduling.services.tokens import Authenticator

from .helpers import at, make_appointment, make_doctor, make_patient


class SchedulingAPITests(APITestCase):
    def setUp(self) -> None:
        # throttle counters live in the cache
        cache.clear()
        self.day = timezone.localdate() + timedelta(days=7)
        self.doctor = make_doctor(available_times=['09:00', '09:30', '10:00', '10:30'])
        self.patient = make_patient()
        self.other_patient = make_patient(username='patient_b', name='Patient B')
        self.admin = User.objects.create_user(username='admin1', password='P@ssw0rd1', role=Role.ADMIN)

    def auth(self, user):
        token = Authenticator().issue_tokens(user)['access']
        self.client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')

    def book(self, hour, minute=0):
        return self.client.post('/api/appointments', {
            'doctorId': self.doctor.pk,
            'startAt': at(self.day, hour, minute).isoformat(),
            'notes': 'checkup',
        }, format='json')

    # -----------------------------------------------------------------
    # auth
    # -----------------------------------------------------------------
    def test_login_returns_tokens_and_role(self):
        r = self.client.post(reverse('login_view'), {'username': 'patient_a', 'password': 'P@ssw0rd1'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data['role'], Role.PATIENT)
        self.assertTrue(r.data['access'] and r.data['refresh'])

        self.client.credentials(HTTP_AUTHORIZATION=f"Bearer {r.data['access']}")
        self.assertEqual(self.client.get('/api/appointments').status_code, status.HTTP_200_OK)

    def test_login_ignores_role_in_body(self):
        r = self.client.post(reverse('login_view'),
                             {'username': 'patient_a', 'password': 'P@ssw0rd1', 'role': 'admin'}, format='json')
        self.assertEqual(r.data['role'], Role.PATIENT)

    def test_wrong_password(self):
        r = self.client.post(reverse('login_view'), {'username': 'patient_a', 'password': 'nope'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(r.data['error']['code'], 'unauthenticated')

    def test_refresh(self):
        refresh = Authenticator().issue_tokens(self.patient.user)['refresh']
        r = self.client.post(reverse('refresh_view'), {'refresh': refresh}, format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        identity = Authenticator().identity_from_token(r.data['access'])
        self.assertEqual(identity.role, Role.PATIENT)

    def test_refresh_rejects_bad_token(self):
        r = self.client.post(reverse('refresh_view'), {'refresh': 'not-a-token'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(r.data['error']['code'], 'unauthenticated')

        access = Authenticator().issue_tokens(self.patient.user)['access']
        r = self.client.post(reverse('refresh_view'), {'refresh': access}, format='json')
        self.assertEqual(r.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_login_is_throttled(self):
        limit, _ = ScopedRateThrottle().parse_rate(ScopedRateThrottle.THROTTLE_RATES['login'])
        for _ in range(limit):
            r = self.client.post(reverse('login_view'), {'username': 'patient_a', 'password': 'nope'}, format='json')
            self.assertEqual(r.status_code, status.HTTP_401_UNAUTHORIZED)
        r = self.client.post(reverse('login_view'), {'username': 'patient_a', 'password': 'P@ssw0rd1'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_429_TOO_MANY_REQUESTS)

    def test_register_then_login(self):
        body = {'username': 'newbie', 'password': 'Str0ng-pass!', 'name': 'New Patient', 'email': 'new@example.com'}
        r = self.client.post(reverse('patient_register'), body, format='json')
        self.assertEqual(r.status_code, status.HTTP_201_CREATED)
        self.assertTrue(r.data['patientId'])

        r = self.client.post(reverse('patient_register'), body, format='json')
        self.assertEqual(r.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(r.data['error']['code'], 'patient_exists')

        r = self.client.post(reverse('login_view'), {'username': 'newbie', 'password': 'Str0ng-pass!'}, format='json')
        self.assertEqual(r.data['role'], Role.PATIENT)

    def test_missing_and_bad_token(self):
        r = self.client.get('/api/appointments')
        self.assertEqual(r.status_code, status.HTTP_401_UNAUTHORIZED)
        self.assertEqual(r.data['error']['code'], 'unauthenticated')

        self.client.credentials(HTTP_AUTHORIZATION='Bearer garbage')
        r = self.client.get('/api/appointments')
        self.assertEqual(r.status_code, status.HTTP_401_UNAUTHORIZED)

    # -----------------------------------------------------------------
    # availability & booking
    # -----------------------------------------------------------------
    def test_availability(self):
        make_appointment(self.doctor, self.other_patient, at(self.day, 9, 0))
        self.auth(self.patient.user)
        r = self.client.get(f'/api/doctors/{self.doctor.pk}/availability', {'date': self.day.isoformat()})
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data['slots'], ['09:30', '10:00', '10:30'])

    def test_availability_requires_valid_date(self):
        self.auth(self.patient.user)
        r = self.client.get(f'/api/doctors/{self.doctor.pk}/availability', {'date': 'tomorrow'})
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(r.data['ok'])

    def test_availability_unknown_doctor(self):
        self.auth(self.patient.user)
        r = self.client.get('/api/doctors/999999/availability', {'date': self.day.isoformat()})
        self.assertEqual(r.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(r.data['error']['code'], 'doctor_not_found')

    def test_book(self):
        self.auth(self.patient.user)
        r = self.book(9)
        self.assertEqual(r.status_code, status.HTTP_201_CREATED)
        appt = Appointment.objects.get(pk=r.data['appointmentId'])
        self.assertEqual(appt.patient_id, self.patient.pk)
        self.assertEqual(r.data['status'], AppointmentStatus.SCHEDULED)
        self.assertEqual(r.data['confirmationCode'], f'APT-{self.doctor.pk}-{self.day:%Y%m%d}-{appt.pk:06d}')

    def test_book_conflict_lists_open_slots(self):
        make_appointment(self.doctor, self.other_patient, at(self.day, 9, 0))
        self.auth(self.patient.user)
        r = self.book(9, 30)
        self.assertEqual(r.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(r.data['error']['code'], 'slot_conflict')
        self.assertEqual(r.data['error']['availableSlots'], ['09:30', '10:00', '10:30'])

    def test_book_too_soon(self):
        self.auth(self.patient.user)
        r = self.client.post('/api/appointments', {
            'doctorId': self.doctor.pk,
            'startAt': (timezone.now() + timedelta(minutes=90)).isoformat(),
        }, format='json')
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(r.data['error']['code'], 'lead_time_violation')

    def test_doctor_cannot_book(self):
        self.auth(self.doctor.user)
        r = self.book(9)
        self.assertEqual(r.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(r.data['error']['code'], 'unauthorized')

    # -----------------------------------------------------------------
    # reads
    # -----------------------------------------------------------------
    def test_list_is_scoped_to_caller(self):
        mine = make_appointment(self.doctor, self.patient, at(self.day, 9, 0))
        make_appointment(self.doctor, self.other_patient, at(self.day, 10, 30))

        self.auth(self.patient.user)
        r = self.client.get('/api/appointments')
        self.assertEqual([a['id'] for a in r.data['data']], [mine.pk])

        self.auth(self.doctor.user)
        r = self.client.get('/api/appointments', {'date': self.day.isoformat()})
        self.assertEqual(r.data['pagination']['total'], 2)

        self.auth(self.admin)
        r = self.client.get('/api/appointments', {'patientName': 'Patient B'})
        self.assertEqual(r.data['pagination']['total'], 1)

    def test_detail(self):
        appt = make_appointment(self.doctor, self.patient, at(self.day, 9, 0))
        self.auth(self.patient.user)
        r = self.client.get(f'/api/appointments/{appt.pk}')
        self.assertEqual(r.data['data']['doctorName'], self.doctor.name)

        self.auth(self.other_patient.user)
        r = self.client.get(f'/api/appointments/{appt.pk}')
        self.assertEqual(r.status_code, status.HTTP_403_FORBIDDEN)

        r = self.client.get('/api/appointments/999999')
        self.assertEqual(r.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(r.data['error']['code'], 'appointment_not_found')

    # -----------------------------------------------------------------
    # transitions
    # -----------------------------------------------------------------
    def test_cancel_by_owner_and_stranger(self):
        appt = make_appointment(self.doctor, self.patient, at(self.day, 9, 0))

        self.auth(self.other_patient.user)
        r = self.client.post(f'/api/appointments/{appt.pk}/cancel', {'reason': 'x'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_403_FORBIDDEN)

        self.auth(self.patient.user)
        r = self.client.post(f'/api/appointments/{appt.pk}/cancel', {'reason': 'travel'}, format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data['data']['status'], AppointmentStatus.CANCELLED)
        self.assertEqual(r.data['data']['cancellationReason'], 'travel')
        self.assertTrue(Appointment.objects.filter(pk=appt.pk).exists())

        r = self.client.post(f'/api/appointments/{appt.pk}/cancel', {}, format='json')
        self.assertEqual(r.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(r.data['error']['code'], 'not_cancellable')

    def test_confirm_then_complete(self):
        appt = make_appointment(self.doctor, self.patient, at(self.day, 9, 0))
        self.auth(self.doctor.user)
        r = self.client.post(f'/api/appointments/{appt.pk}/confirm')
        self.assertEqual(r.data['data']['status'], AppointmentStatus.CONFIRMED)

        # not started yet; only admins may force
        r = self.client.post(f'/api/appointments/{appt.pk}/complete', {'force': True}, format='json')
        self.assertEqual(r.status_code, status.HTTP_409_CONFLICT)
        self.assertEqual(r.data['error']['code'], 'transition_rejected')

        self.auth(self.admin)
        r = self.client.post(f'/api/appointments/{appt.pk}/complete', {'force': True}, format='json')
        self.assertEqual(r.data['data']['status'], AppointmentStatus.COMPLETED)

    def test_no_show(self):
        appt = make_appointment(self.doctor, self.patient, timezone.now() - timedelta(hours=1),
                                status=AppointmentStatus.CONFIRMED)
        self.auth(self.doctor.user)
        r = self.client.post(f'/api/appointments/{appt.pk}/no-show')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        self.assertEqual(r.data['data']['status'], AppointmentStatus.NO_SHOW)

    def test_reschedule(self):
        appt = make_appointment(self.doctor, self.patient, at(self.day, 9, 0))
        self.auth(self.patient.user)
        r = self.client.post(f'/api/appointments/{appt.pk}/reschedule',
                             {'startAt': at(self.day, 10, 30).isoformat()}, format='json')
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        appt.refresh_from_db()
        self.assertEqual(appt.start_at, at(self.day, 10, 30))
        self.assertEqual(r.data['status'], AppointmentStatus.SCHEDULED)

    # -----------------------------------------------------------------
    # dashboard & health
    # -----------------------------------------------------------------
    def test_dashboard(self):
        make_appointment(self.doctor, self.patient, at(self.day, 9, 0))
        make_appointment(self.doctor, self.other_patient, at(self.day, 10, 30), status=AppointmentStatus.CANCELLED)

        self.auth(self.patient.user)
        r = self.client.get('/api/dashboard/summary', {'date': self.day.isoformat()})
        self.assertEqual(r.status_code, status.HTTP_403_FORBIDDEN)

        self.auth(self.doctor.user)
        r = self.client.get('/api/dashboard/summary', {'date': self.day.isoformat()})
        self.assertEqual(r.status_code, status.HTTP_200_OK)
        data = r.data['data']
        self.assertEqual(data['total'], 2)
        self.assertEqual(data['byStatus']['scheduled'], 1)
        self.assertEqual(data['byStatus']['cancelled'], 1)
        self.assertEqual(data['availableSlots'], ['09:30', '10:00', '10:30'])

    def test_healthz(self):
        r = self.client.get(reverse('healthz'))
        self.assertEqual(r.status_code, 200)
        self.assertTrue(r.json()['ok'])

    # -----------------------------------------------------------------
    # directory & prescriptions
    # -----------------------------------------------------------------
    def test_doctor_directory(self):
        make_doctor(username='dr_pm', name='Dr. Evening', specialty='Dermatology', available_times=['15:00'])
        self.doctor.specialty = 'Cardiology'
        self.doctor.save()
        self.auth(self.patient.user)

        r = self.client.get('/api/doctors', {'time': 'AM'})
        self.assertEqual([d['id'] for d in r.data['data']], [self.doctor.pk])

        r = self.client.get('/api/doctors', {'specialty': 'dermatology'})
        self.assertEqual([d['name'] for d in r.data['data']], ['Dr. Evening'])

        r = self.client.get('/api/doctors', {'time': 'noon'})
        self.assertEqual(r.status_code, status.HTTP_400_BAD_REQUEST)

        r = self.client.get('/api/doctors/specialties')
        self.assertEqual(r.data['data'], ['Cardiology', 'Dermatology'])

    def test_list_by_doctor_name_and_when(self):
        other = make_doctor(username='dr_b', name='Dr. Brown', available_times=['09:00'])
        make_appointment(self.doctor, self.patient, timezone.now() - timedelta(days=2))
        upcoming = make_appointment(other, self.patient, at(self.day, 9, 0))

        self.auth(self.patient.user)
        r = self.client.get('/api/appointments', {'when': 'future', 'doctorName': 'brown'})
        self.assertEqual([a['id'] for a in r.data['data']], [upcoming.pk])
        r = self.client.get('/api/appointments', {'when': 'past'})
        self.assertEqual(r.data['pagination']['total'], 1)

    def test_end_time_in_representation(self):
        appt = make_appointment(self.doctor, self.patient, at(self.day, 9, 0))
        self.auth(self.patient.user)
        r = self.client.get(f'/api/appointments/{appt.pk}')
        data = r.data['data']
        self.assertEqual(parse_datetime(data['endAt']) - parse_datetime(data['startAt']), timedelta(minutes=60))

    def test_prescription_flow(self):
        appt = make_appointment(self.doctor, self.patient, at(self.day, 9, 0))
        self.auth(self.doctor.user)
        r = self.client.post('/api/prescriptions', {
            'appointmentId': appt.pk, 'medicationName': 'Ibuprofen', 'dosage': '200mg',
        }, format='json')
        self.assertEqual(r.status_code, status.HTTP_201_CREATED)
        rx_id = r.data['data']['id']

        r = self.client.post('/api/prescriptions', {
            'appointmentId': appt.pk, 'medicationName': 'Ibuprofen', 'dosage': '400mg',
        }, format='json')
        self.assertEqual(r.data['error']['code'], 'prescription_exists')

        r = self.client.patch(f'/api/prescriptions/{rx_id}', {'refillsRemaining': 2}, format='json')
        self.assertEqual(r.data['data']['refillsRemaining'], 2)

        self.auth(self.patient.user)
        r = self.client.get(f'/api/appointments/{appt.pk}/prescription')
        self.assertEqual(r.data['data']['medicationName'], 'Ibuprofen')
        r = self.client.delete(f'/api/prescriptions/{rx_id}')
        self.assertEqual(r.status_code, status.HTTP_403_FORBIDDEN)

        self.auth(self.other_patient.user)
        r = self.client.get(f'/api/prescriptions/{rx_id}')
        self.assertEqual(r.status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(self.client.get('/api/prescriptions').data['data'], [])

        self.auth(self.doctor.user)
        self.assertEqual(self.client.delete(f'/api/prescriptions/{rx_id}').status_code, status.HTTP_200_OK)
        r = self.client.get(f'/api/prescriptions/{rx_id}')
        self.assertEqual(r.data['error']['code'], 'prescription_not_found')
