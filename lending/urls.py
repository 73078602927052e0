from django.urls import path

from lending.views import (
    act_view,
    available_actions_view,
    offer_preview_view,
    request_history_view,
)

app_name = 'lending'

urlpatterns = [
    # Workflow
    path('requests/<uuid:request_id>/actions/', available_actions_view, name='available_actions'),
    path('requests/<uuid:request_id>/actions/<str:action_id>/', act_view, name='act'),
    path('requests/<uuid:request_id>/history/', request_history_view, name='request_history'),

    # Offers
    path('offers/preview/', offer_preview_view, name='offer_preview'),
]
