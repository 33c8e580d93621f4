"""
User-facing messages per error code, in English and Turkish.
"""
from config import settings

SUPPORTED_LANGUAGES = ("en", "tr")

MESSAGES = {
    "en": {
        "TENANT_NOT_FOUND": "Your company account could not be found.",
        "TENANT_INACTIVE": "Your company account is inactive.",
        "ONBOARDING_INCOMPLETE": "Please finish setting up your company before asking questions.",
        "NO_SUBSCRIPTION": "Your company does not have an active subscription plan.",
        "SUBSCRIPTION_EXPIRED": "Your subscription has expired. Please renew it to continue.",
        "DATA_SOURCE_NOT_CONNECTED": "Your data source is not connected yet.",
        "DAILY_QUOTA_EXCEEDED": "You have used all of today's queries. The limit resets at {resets_at}.",
        "MONTHLY_QUOTA_EXCEEDED": "You have used all of this month's queries. The limit resets at {resets_at}.",
        "RATE_LIMIT_EXCEEDED": "Too many requests. Please wait {retry_after} seconds and try again.",
        "PLANNING_SERVICE_BUSY": "The assistant is busy right now. Please try again in a moment.",
        "AI_SERVICE_ERROR": "The assistant is temporarily unavailable.",
        "VALIDATION_FAILED": "Your question could not be turned into a valid query.",
        "OUT_OF_SCOPE": "I can only answer questions about your sales, stock and products.",
        "EXECUTION_FAILED": "Some parts of your query could not be completed.",
        "REQUEST_CANCELLED": "The request was cancelled.",
        "EMPTY_QUERY": "Please enter a question.",
        "INTERNAL_ERROR": "Something went wrong. Please try again.",
        "UPGRADE_REQUIRED": "Upgrade your plan to use: {capabilities}.",
    },
    "tr": {
        "TENANT_NOT_FOUND": "Şirket hesabınız bulunamadı.",
        "TENANT_INACTIVE": "Şirket hesabınız aktif değil.",
        "ONBOARDING_INCOMPLETE": "Soru sormadan önce lütfen şirket kurulumunu tamamlayın.",
        "NO_SUBSCRIPTION": "Şirketinizin aktif bir abonelik planı yok.",
        "SUBSCRIPTION_EXPIRED": "Aboneliğinizin süresi doldu. Devam etmek için lütfen yenileyin.",
        "DATA_SOURCE_NOT_CONNECTED": "Veri kaynağınız henüz bağlı değil.",
        "DAILY_QUOTA_EXCEEDED": "Bugünkü sorgu hakkınız doldu. Limit {resets_at} tarihinde yenilenir.",
        "MONTHLY_QUOTA_EXCEEDED": "Bu ayki sorgu hakkınız doldu. Limit {resets_at} tarihinde yenilenir.",
        "RATE_LIMIT_EXCEEDED": "Çok fazla istek. Lütfen {retry_after} saniye bekleyip tekrar deneyin.",
        "PLANNING_SERVICE_BUSY": "Asistan şu anda meşgul. Lütfen biraz sonra tekrar deneyin.",
        "AI_SERVICE_ERROR": "Asistan geçici olarak kullanılamıyor.",
        "VALIDATION_FAILED": "Sorunuz geçerli bir sorguya dönüştürülemedi.",
        "OUT_OF_SCOPE": "Yalnızca satış, stok ve ürünlerinizle ilgili soruları yanıtlayabilirim.",
        "EXECUTION_FAILED": "Sorgunuzun bazı bölümleri tamamlanamadı.",
        "REQUEST_CANCELLED": "İstek iptal edildi.",
        "EMPTY_QUERY": "Lütfen bir soru girin.",
        "INTERNAL_ERROR": "Bir hata oluştu. Lütfen tekrar deneyin.",
        "UPGRADE_REQUIRED": "Şunları kullanmak için planınızı yükseltin: {capabilities}.",
    },
}


def resolve_language(accept_language: str | None) -> str:
    """Pick the first supported language from an Accept-Language header"""
    for part in (accept_language or "").split(","):
        code = part.split(";")[0].strip().lower()[:2]
        if code in SUPPORTED_LANGUAGES:
            return code
    return settings.DEFAULT_LANGUAGE if settings.DEFAULT_LANGUAGE in SUPPORTED_LANGUAGES else "en"


def get_message(code: str, language: str | None = None, **kwargs) -> str:
    """Localized message for an error code; falls back to English, then to the code itself"""
    language = language if language in MESSAGES else "en"
    template = MESSAGES[language].get(code) or MESSAGES["en"].get(code)
    if template is None:
        return code
    try:
        return template.format(**kwargs)
    except KeyError:
        return template
