from django.urls import include, path

urlpatterns = [
    path('lending/', include('lending.urls')),
]
