"""
drf-spectacular hooks for the Course Hive OpenAPI schema.
"""
from django.conf import settings


def remove_extra_security_schemes(result, generator, request, public):
    """Drop the auto-detected session/basic schemes; only TokenAuth is documented."""
    components = result.get('components', {})
    if 'securitySchemes' in components:
        components['securitySchemes'] = dict(
            settings.SPECTACULAR_SETTINGS['APPEND_COMPONENTS']['securitySchemes']
        )
    for path_item in result.get('paths', {}).values():
        for operation in path_item.values():
            if not isinstance(operation, dict) or not operation.get('security'):
                continue
            security = operation['security']
            if any(security):
                operation['security'] = [{'TokenAuth': []}] + ([{}] if {} in security else [])
    return result
