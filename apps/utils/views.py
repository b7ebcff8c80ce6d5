# apps/utils/views.py
from rest_framework.views import APIView
from rest_framework.response import Response
from rest_framework.permissions import AllowAny
from django.conf import settings


class ServerInfoView(APIView):
    permission_classes = [AllowAny]

    def get(self, request):
        return Response({
            "app_name": settings.PROJECT_NAME,
            "version": settings.PROJECT_VERSION,
            "debug": settings.DEBUG,
            "movement_auto_approve_limit": str(settings.STOCK_MOVEMENT_AUTO_APPROVE_LIMIT),
        })
