from app.backbone.errors import ErrorCode


class CaptchaErrorCode(ErrorCode):
    CAPTCHA_ERROR = (900000, "Captcha error")
    CAPTCHA_PARAM_INVALID = (900100, "Captcha parameters are invalid")
    CAPTCHA_INVALID = (900600, "Captcha is invalid")
    CAPTCHA_EXPIRED = (900601, "Captcha has expired")
    CAPTCHA_MISMATCH = (900602, "Captcha answer does not match")
