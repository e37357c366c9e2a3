from django.http import JsonResponse, HttpResponseNotAllowed
from django.views.decorators.csrf import csrf_exempt

from ..env import firebase_env_status
from ..firebase_service import firestore_service
from ..storage_service import storage_service


@csrf_exempt
def health(request):
    if request.method != "GET":
        return HttpResponseNotAllowed(["GET"])

    firestore_ok = firestore_service.is_available()
    env = firebase_env_status()

    return JsonResponse({
        "status": "ok",
        "firestore": "connected" if firestore_ok else "not_configured",
        "storage": "configured" if storage_service.is_available() else "not_configured",
        "env": {
            "valid": env.valid,
            "missing": env.missing,
            "warnings": env.warnings,
        },
    })
