"""
URL mappings for the scheduling API.

Trailing slashes are omitted, matching the paths the front-end calls.
"""
from django.urls import include, path

from .views import appointments, dashboard, doctors, health, patients, prescriptions
from .views.auth import login_view, refresh_view

urlpatterns = [
    path('', include('django_prometheus.urls')),
    path('healthz', health.healthz, name='healthz'),
    path('api/auth/login', login_view, name='login_view'),
    path('api/auth/refresh', refresh_view, name='refresh_view'),
    path('api/patients/register', patients.patient_register, name='patient_register'),
    path('api/doctors', doctors.doctor_list),
    path('api/doctors/specialties', doctors.doctor_specialties),
    path('api/doctors/<int:doctor_id>/availability', appointments.doctor_availability),
    path('api/appointments', appointments.appointments),
    path('api/appointments/<int:appointment_id>', appointments.appointment_detail),
    path('api/appointments/<int:appointment_id>/cancel', appointments.appointment_cancel),
    path('api/appointments/<int:appointment_id>/confirm', appointments.appointment_confirm),
    path('api/appointments/<int:appointment_id>/reschedule', appointments.appointment_reschedule),
    path('api/appointments/<int:appointment_id>/complete', appointments.appointment_complete),
    path('api/appointments/<int:appointment_id>/no-show', appointments.appointment_no_show),
    path('api/appointments/<int:appointment_id>/prescription', prescriptions.appointment_prescription),
    path('api/prescriptions', prescriptions.prescriptions),
    path('api/prescriptions/<int:prescription_id>', prescriptions.prescription_detail),
    path('api/dashboard/summary', dashboard.day_summary),
]
