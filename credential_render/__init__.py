"""Certificate and badge rendering engine.

Takes a template image plus a list of named field placements and draws
the recipient's values onto it, returning a flattened PNG.

The package is organized into the following modules:
    config: Constants, RenderConfig and configure_logging().
    errors: Exception taxonomy (InvalidInputFormat, CorruptImage, ...).
    models: Placeholder, RenderRequest, RenderResult, TemplateRecord.
    font_client: Downloads font binaries from a CSS font API.
    font_resolver: System font substitution, caching and fallback.
    image_codec: Data URI decoding and output encoding.
    surface: The Pillow canvas that field text and QR codes are drawn on.
    compositor: The public entry point.

Example usage:
    Render a certificate::

        from credential_render import Compositor, Placeholder, RenderRequest

        compositor = Compositor()
        request = RenderRequest(
            source_image='data:image/png;base64,...',
            placeholders=[
                Placeholder('Name', 'text', x=300, y=200, font_size=24),
                Placeholder('Email', 'email'),
            ],
            field_values={'Name': 'Jane Doe', 'Email': 'jane@example.com'},
        )
        result = compositor.render_certificate(request)
        result.data_uri   # 'data:image/png;base64,...'

Attributes:
    __version__ (str): Package version string.
    __all__ (list): List of public symbols exported by this package.
"""

from .compositor import Compositor
from .config import RenderConfig, configure_logging
from .errors import (
    CorruptImage,
    CredentialRenderError,
    InvalidInputFormat,
    InvalidTemplate,
    RenderFailure,
    UnsupportedFormat,
)
from .font_client import FontAcquisitionClient
from .font_resolver import FontResolver
from .models import Placeholder, RenderRequest, RenderResult, ResolvedFont, TemplateRecord

__all__ = [
    # Entry points
    'Compositor', 'FontResolver', 'FontAcquisitionClient',
    # Data
    'Placeholder', 'RenderRequest', 'RenderResult', 'ResolvedFont', 'TemplateRecord',
    # Config
    'RenderConfig', 'configure_logging',
    # Errors
    'CredentialRenderError', 'InvalidInputFormat', 'UnsupportedFormat',
    'CorruptImage', 'InvalidTemplate', 'RenderFailure',
]

__version__ = '1.0.0'
