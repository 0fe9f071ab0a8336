# task_manager/accounts/urls.py
from django.urls import path

from .views import (
    ChangePasswordView,
    CurrentUserView,
    ForgotPasswordView,
    ResetPasswordView,
    UserDetailView,
    UserLoginView,
    UserRegistrationView,
)

urlpatterns = [
    path('register/', UserRegistrationView.as_view(), name='user-register'),
    path('login/', UserLoginView.as_view(), name='user-login'),
    path('forgot-password/', ForgotPasswordView.as_view(), name='forgot-password'),
    path('reset-password/', ResetPasswordView.as_view(), name='reset-password'),
    path('change-password/', ChangePasswordView.as_view(), name='change-password'),
    path('me/', CurrentUserView.as_view(), name='user-me'),
    path('<uuid:pk>/', UserDetailView.as_view(), name='user-detail'),
]
