from app.keycrm.api import KeyCRMAPI


def build_crm_client(config):
    '''
    Returns a KeyCRMAPI configured from the Flask config.
    '''
    return KeyCRMAPI(
        config.get("KEYCRM_KEY"),
        base_url=config.get("KEYCRM_BASE_URL"),
        timeout=config.get("CRM_TIMEOUT_SECONDS", 30),
    )
