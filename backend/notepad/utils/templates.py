from jinja2 import Environment

_env = Environment(autoescape=True)

NOTE_PAGE = _env.from_string('''<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>{{ title }}</title>
</head>
<body>
  <form method="post" action="/{{ note.id }}">
    <textarea name="text" autofocus>{{ note.content }}</textarea>
    <button type="submit">Save</button>
  </form>
  <p>
    Version {{ note.version }}{% if current_version %} of {{ current_version }}{% else %} (unsaved){% endif %}
    &middot; <a href="/{{ note.id }}/history">history</a>
  </p>
</body>
</html>
''')

SHARE_PAGE = _env.from_string('''<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>{{ title }}</title>
  {% if stylesheet %}<style>{{ stylesheet | safe }}</style>{% endif %}
</head>
<body class="{{ 'dark' if mode == 'dark' else '' }}">
  <div id="app" class="{{ format }}">
    {%- if format == "markdown" -%}
    {{ body | safe }}
    {%- elif format == "code" -%}
    <pre class="highlight" data-language="{{ language }}">{{ body | safe }}</pre>
    {%- else -%}
    <pre>{{ body }}</pre>
    {%- endif -%}
  </div>
</body>
</html>
''')

ERROR_PAGE = _env.from_string('''<!DOCTYPE html>
<html>
<head>
  <meta charset="utf-8">
  <title>{{ status_code }}</title>
</head>
<body>
  <h1>{{ status_code }}</h1>
  <p>{{ message }}</p>
</body>
</html>
''')
