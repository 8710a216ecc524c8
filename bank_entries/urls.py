from django.urls import path
from . import views

app_name = 'bank_entries'

urlpatterns = [
    path('transactions', views.post_transactions, name='post'),
]
