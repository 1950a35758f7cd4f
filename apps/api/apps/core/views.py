"""
Core views - current user profile.
"""
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from .observability.correlation import set_user_context
from .serializers import UserProfileSerializer


class CurrentUserView(APIView):
    """
    Current authenticated user profile endpoint.

    GET /api/auth/me/ - Returns profile of the authenticated user.

    The frontend calls this after login to learn the user's roles and, for
    patients and doctors, the id of their clinical profile.

    Response format:
    {
        "id": "uuid",
        "email": "user@example.com",
        "full_name": "Jane Doe",
        "is_active": true,
        "roles": ["patient"],
        "patient_id": "uuid",
        "doctor_id": null
    }
    """
    permission_classes = [IsAuthenticated]

    def get(self, request):
        user = request.user
        set_user_context(user)

        patient = getattr(user, 'patient_profile', None)
        doctor = getattr(user, 'doctor_profile', None)

        profile_data = {
            'id': user.id,
            'email': user.email,
            'full_name': user.full_name,
            'is_active': user.is_active,
            'roles': sorted(user.role_names),
            'patient_id': patient.id if patient else None,
            'doctor_id': doctor.id if doctor else None,
        }

        serializer = UserProfileSerializer(profile_data)
        return Response(serializer.data, status=status.HTTP_200_OK)
