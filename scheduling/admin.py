"""
Django admin registrations for the scheduling models.

Doctors and patients are managed here.  Appointments are read and
edited through the admin but never deleted; cancelling keeps the row.
"""

from django.contrib import admin

from .models import Appointment, AppointmentTransition, Doctor, Patient, Prescription, User


@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ('username', 'role', 'is_active', 'is_staff', 'is_superuser')
    list_filter = ('role', 'is_active')
    search_fields = ('username', 'first_name', 'last_name', 'email')


@admin.register(Doctor)
class DoctorAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'specialty', 'active', 'booking_version', 'created_at')
    readonly_fields = ('booking_version',)
    list_filter = ('active', 'specialty')
    search_fields = ('name', 'email', 'user__username')


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ('id', 'name', 'phone', 'status', 'created_at')
    list_filter = ('status',)
    search_fields = ('name', 'email', 'phone', 'user__username')


class AppointmentTransitionInline(admin.TabularInline):
    model = AppointmentTransition
    extra = 0
    can_delete = False
    readonly_fields = ('from_status', 'to_status', 'operator', 'timestamp', 'reason')


@admin.register(Appointment)
class AppointmentAdmin(admin.ModelAdmin):
    list_display = ('id', 'doctor', 'patient', 'start_at', 'status', 'created_at')
    list_filter = ('status', 'doctor')
    search_fields = ('id', 'patient__name', 'doctor__name')
    date_hierarchy = 'start_at'
    inlines = [AppointmentTransitionInline]

    def has_delete_permission(self, request, obj=None):
        return False


@admin.register(AppointmentTransition)
class AppointmentTransitionAdmin(admin.ModelAdmin):
    list_display = ('appointment', 'from_status', 'to_status', 'operator', 'timestamp')
    list_filter = ('to_status',)
    search_fields = ('appointment__id', 'operator__username')


@admin.register(Prescription)
class PrescriptionAdmin(admin.ModelAdmin):
    list_display = ('id', 'appointment', 'medication_name', 'dosage', 'status', 'prescribed_on')
    list_filter = ('status',)
    search_fields = ('medication_name', 'patient__name', 'doctor__name')
