"""
URL configuration for the HireMatch project.

Only the Django admin is exposed; it is where recruiters inspect match
explanations and failed fit-score jobs.
"""

from django.contrib import admin
from django.urls import path

urlpatterns = [
    path('admin/', admin.site.urls),
]
