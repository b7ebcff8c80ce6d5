from django.http import JsonResponse
from django.db import connection


def health_check(request):
    status = {"db": "unknown"}
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
        status["db"] = "ok"

        return JsonResponse({"status": "ok", "components": status}, status=200)
    except Exception as e:
        return JsonResponse(
            {"status": "error", "detail": str(e), "components": status},
            status=503
        )
