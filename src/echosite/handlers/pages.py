"""
HTML pages served by the static responder.

Both pages share one layout: a title, a nav bar linking the two pages, the
favicon link and a content block. They are rendered once when the responder
is built; nothing in them depends on the request.
"""

from html import escape


LAYOUT = """<!DOCTYPE html>
<html lang="es">
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1">
    <title>{title}</title>
    <link rel="icon" type="image/svg+xml" href="/favicon.svg">
    <style>
        body {{
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, sans-serif;
            max-width: 720px;
            margin: 40px auto;
            padding: 0 20px;
            color: #222;
        }}
        nav a {{
            margin-right: 16px;
            color: #4f46e5;
            text-decoration: none;
        }}
        code {{
            background: #f1f1f1;
            padding: 2px 6px;
            border-radius: 4px;
        }}
    </style>
</head>
<body>
    <nav>
        <a href="/">Inicio</a>
        <a href="/about">Acerca de</a>
    </nav>
    <h1>{heading}</h1>
{content}
</body>
</html>
"""


def render_page(title: str, heading: str, content: str) -> str:
    """
    Fill the shared layout.

    ``title`` and ``heading`` are escaped; ``content`` is trusted HTML.
    """
    return LAYOUT.format(
        title=escape(title),
        heading=escape(heading),
        content=content,
    )


def render_home() -> str:
    return render_page(
        title="Inicio",
        heading="Bienvenido",
        content=(
            "    <p>Servidor HTTP básico.</p>\n"
            "    <p>Envía JSON con <code>POST</code> a cualquier ruta y el "
            "servidor te lo devolverá.</p>\n"
        ),
    )


def render_about() -> str:
    return render_page(
        title="Acerca de",
        heading="Acerca de",
        content=(
            "    <p>Las peticiones <code>GET</code> sirven estas páginas y el "
            "favicon; las peticiones <code>POST</code> devuelven el cuerpo "
            "JSON recibido.</p>\n"
        ),
    )
