# task_manager/accounts/views.py
from django.contrib.auth import get_user_model
from drf_yasg import openapi
from drf_yasg.utils import swagger_auto_schema
from rest_framework import generics, permissions, status
from rest_framework.response import Response
from rest_framework.views import APIView
from rest_framework_simplejwt.authentication import JWTAuthentication

from . import services
from .serializers import (
    ChangePasswordSerializer,
    ForgotPasswordSerializer,
    ResetPasswordSerializer,
    UserLoginSerializer,
    UserProfileUpdateSerializer,
    UserRegistrationSerializer,
    UserSerializer,
)

User = get_user_model()


login_response = openapi.Response(
    description="Login successful",
    schema=openapi.Schema(
        type=openapi.TYPE_OBJECT,
        properties={
            "access_token": openapi.Schema(type=openapi.TYPE_STRING),
            "user": openapi.Schema(
                type=openapi.TYPE_OBJECT,
                properties={
                    "id": openapi.Schema(type=openapi.TYPE_STRING, format=openapi.FORMAT_UUID),
                    "username": openapi.Schema(type=openapi.TYPE_STRING),
                    "email": openapi.Schema(type=openapi.TYPE_STRING),
                },
            ),
        },
    ),
)


class UserRegistrationView(APIView):
    permission_classes = [permissions.AllowAny]
    authentication_classes = []

    @swagger_auto_schema(
        operation_summary="Register a new user",
        request_body=UserRegistrationSerializer,
        responses={
            201: UserSerializer(),
            400: "Validation errors in request body",
            409: "Email or username already in use",
        },
    )
    def post(self, request):
        serializer = UserRegistrationSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        user = services.register_user(data['email'], data['username'], data['password'])
        return Response(UserSerializer(user).data, status=status.HTTP_201_CREATED)


class UserLoginView(APIView):
    permission_classes = [permissions.AllowAny]
    authentication_classes = []

    def get_authenticate_header(self, request):
        # keeps failed logins at 401 while stale bearer headers are ignored
        return JWTAuthentication().authenticate_header(request)

    @swagger_auto_schema(
        operation_summary="Log in with email or username",
        request_body=UserLoginSerializer,
        responses={200: login_response, 401: "Invalid credentials"},
    )
    def post(self, request):
        serializer = UserLoginSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        user, access_token = services.login(
            request, serializer.validated_data['identifier'], serializer.validated_data['password']
        )
        return Response(
            {"access_token": access_token, "user": UserSerializer(user).data},
            status=status.HTTP_200_OK,
        )


class ForgotPasswordView(APIView):
    permission_classes = [permissions.AllowAny]
    authentication_classes = []

    @swagger_auto_schema(
        operation_summary="Request a password reset email",
        request_body=ForgotPasswordSerializer,
        responses={200: "Sent if the email is registered"},
    )
    def post(self, request):
        serializer = ForgotPasswordSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        services.request_password_reset(serializer.validated_data['email'])
        return Response(
            {"message": "If that email is registered, a reset link has been sent."},
            status=status.HTTP_200_OK,
        )


class ResetPasswordView(APIView):
    permission_classes = [permissions.AllowAny]
    authentication_classes = []

    @swagger_auto_schema(
        operation_summary="Reset a password using the emailed token",
        request_body=ResetPasswordSerializer,
        responses={204: "Password reset", 400: "Invalid or expired token"},
    )
    def post(self, request):
        serializer = ResetPasswordSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        services.reset_password(
            serializer.validated_data['token'], serializer.validated_data['new_password']
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


class ChangePasswordView(APIView):
    @swagger_auto_schema(
        operation_summary="Change the current user's password",
        request_body=ChangePasswordSerializer,
        responses={204: "Password changed", 400: "Validation errors", 401: "Current password is incorrect"},
    )
    def post(self, request):
        serializer = ChangePasswordSerializer(data=request.data, context={'request': request})
        serializer.is_valid(raise_exception=True)

        services.change_password(
            request.user,
            serializer.validated_data['current_password'],
            serializer.validated_data['new_password'],
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


class CurrentUserView(APIView):
    @swagger_auto_schema(operation_summary="Get the current user", responses={200: UserSerializer()})
    def get(self, request):
        return Response(UserSerializer(request.user).data)

    @swagger_auto_schema(
        operation_summary="Update the current user's username or email",
        request_body=UserProfileUpdateSerializer,
        responses={200: UserSerializer(), 409: "Email or username already in use"},
    )
    def put(self, request):
        serializer = UserProfileUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        user = services.update_profile(request.user, **serializer.validated_data)
        return Response(UserSerializer(user).data)


class UserDetailView(generics.RetrieveAPIView):
    serializer_class = UserSerializer
    queryset = User.objects.all()

    @swagger_auto_schema(operation_summary="Get a user's public profile", responses={404: "Not Found"})
    def get(self, request, *args, **kwargs):
        return super().get(request, *args, **kwargs)
