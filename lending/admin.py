from django.contrib import admin

from .models import User, LoanRequest, OfferInstallment, RequestHistory, Loan, EMISchedule

# ==============================================================================
# USERS
# ==============================================================================

@admin.register(User)
class UserAdmin(admin.ModelAdmin):
    list_display = ['email', 'get_full_name', 'roles', 'districts', 'is_active']
    list_filter = ['is_active', 'is_staff']
    search_fields = ['email', 'first_name', 'last_name']
    readonly_fields = ['date_joined', 'last_login']

    fieldsets = (
        ('Authentication', {
            'fields': ('email', 'password')
        }),
        ('Personal Info', {
            'fields': ('first_name', 'last_name')
        }),
        ('Workflow Access', {
            'fields': ('roles', 'districts')
        }),
        ('Permissions', {
            'fields': ('is_active', 'is_staff', 'is_superuser')
        }),
        ('Timestamps', {
            'fields': ('date_joined', 'last_login'),
            'classes': ('collapse',)
        }),
    )


# ==============================================================================
# REQUESTS
# ==============================================================================

class OfferInstallmentInline(admin.TabularInline):
    model = OfferInstallment
    extra = 0
    can_delete = False
    readonly_fields = ['installment_number', 'payment_date', 'payment_amount',
                       'principal_component', 'interest_component', 'remaining_balance']

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(LoanRequest)
class LoanRequestAdmin(admin.ModelAdmin):
    """Status and offer fields are read-only; they change through workflow actions"""

    list_display = ['request_number', 'customer', 'district', 'current_status',
                    'requested_amount', 'admin_offered_amount', 'assigned_agent', 'created_at']
    list_filter = ['current_status', 'district']
    search_fields = ['request_number', 'customer__email']
    inlines = [OfferInstallmentInline]
    readonly_fields = [
        'request_number', 'current_status', 'status_changed_at', 'version', 'assigned_agent',
        'admin_offered_amount', 'admin_tenure_months', 'admin_interest_rate', 'offer_made_date',
        'offer_emi', 'offer_total_interest', 'offer_total_payment', 'offer_accepted_at',
        'inspection_scheduled_at', 'payout_details', 'transfer_reference',
        'created_at', 'updated_at',
    ]

    fieldsets = (
        ('Request', {
            'fields': ('request_number', 'customer', 'district', 'requested_amount',
                       'asset_type', 'asset_description', 'customer_notes')
        }),
        ('Workflow', {
            'fields': ('current_status', 'status_changed_at', 'version', 'assigned_agent',
                       'inspection_scheduled_at', 'inspection_notes')
        }),
        ('Offer', {
            'fields': ('admin_offered_amount', 'admin_tenure_months', 'admin_interest_rate',
                       'offer_made_date', 'offer_emi', 'offer_total_interest',
                       'offer_total_payment', 'offer_accepted_at')
        }),
        ('Payout', {
            'fields': ('payout_details', 'transfer_reference')
        }),
        ('Timestamps', {
            'fields': ('created_at', 'updated_at'),
            'classes': ('collapse',)
        }),
    )


@admin.register(RequestHistory)
class RequestHistoryAdmin(admin.ModelAdmin):
    """Append-only; nothing can be added, edited or deleted here"""

    list_display = ['id', 'request', 'action', 'actor', 'created_at']
    list_filter = ['action']
    search_fields = ['request__request_number', 'action']
    readonly_fields = ['request', 'actor', 'action', 'metadata', 'created_at']

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# ==============================================================================
# LOANS
# ==============================================================================

class EMIScheduleInline(admin.TabularInline):
    model = EMISchedule
    extra = 0
    can_delete = False
    readonly_fields = ['emi_number', 'due_date', 'emi_amount', 'principal_amount',
                       'interest_amount', 'remaining_balance', 'status', 'paid_at',
                       'payment_reference']

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Loan)
class LoanAdmin(admin.ModelAdmin):
    list_display = ['loan_number', 'customer', 'approved_amount', 'interest_rate',
                    'tenure_months', 'emi_amount', 'status', 'created_at']
    list_filter = ['status']
    search_fields = ['loan_number', 'customer__email', 'request__request_number']
    inlines = [EMIScheduleInline]
    readonly_fields = ['loan_number', 'request', 'customer', 'approved_amount', 'interest_rate',
                       'tenure_months', 'emi_amount', 'total_interest', 'total_payment',
                       'first_emi_date', 'last_emi_date', 'status', 'disbursed_at',
                       'activated_at', 'closed_at', 'created_at', 'updated_at']
