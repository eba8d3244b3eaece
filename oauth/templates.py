"""HTML templates for the login, consent and authorize-error pages.

Values are inserted with str.format(); callers escape them first.
"""

_STYLE = """
    <style>
        body {{ font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', sans-serif; background: #F6F7F9;
               min-height: 100vh; display: flex; align-items: center; justify-content: center; margin: 0; }}
        .container {{ background: white; padding: 36px; border-radius: 12px; border: 1px solid #E3E5E8;
                     box-shadow: 0 4px 20px rgba(0,0,0,0.06); width: 100%; max-width: 420px; }}
        h1 {{ margin: 0 0 8px; color: #1B1F24; font-size: 22px; font-weight: 600; }}
        p {{ color: #5B6270; margin: 0 0 20px; }}
        label {{ display: block; margin-bottom: 8px; color: #1B1F24; font-weight: 500; font-size: 14px; }}
        input[type="text"] {{ width: 100%; padding: 11px 13px; border: 1px solid #CED3DA; border-radius: 8px;
                             font-size: 15px; box-sizing: border-box; margin-bottom: 18px; }}
        ul.scopes {{ padding-left: 20px; color: #1B1F24; }}
        .actions {{ display: flex; gap: 10px; }}
        button {{ flex: 1; padding: 12px; border: none; border-radius: 8px; font-size: 15px; font-weight: 600;
                 cursor: pointer; background: #2F6FEB; color: white; }}
        button.secondary {{ background: #EEF0F3; color: #1B1F24; }}
        .error {{ background: #FEF2F2; color: #B91C1C; padding: 12px; border-radius: 8px; margin-bottom: 18px;
                 border: 1px solid #FECACA; }}
        .footer {{ margin-top: 18px; font-size: 13px; color: #5B6270; }}
    </style>
"""

LOGIN_PAGE = """
<!DOCTYPE html>
<html>
<head>
    <title>Sign in</title>
""" + _STYLE + """
</head>
<body>
    <div class="container">
        <h1>Sign in</h1>
        <p>Sign in to continue to the application that sent you here.</p>
        {error}
        <form method="POST" action="/login">
            <input type="hidden" name="return_url" value="{return_url}">
            <label for="username">Username</label>
            <input type="text" id="username" name="username" required autofocus>
            <div class="actions"><button type="submit">Sign in</button></div>
        </form>
    </div>
</body>
</html>
"""

CONSENT_PAGE = """
<!DOCTYPE html>
<html>
<head>
    <title>Authorize {client_name}</title>
""" + _STYLE + """
</head>
<body>
    <div class="container">
        <h1>Authorize {client_name}</h1>
        <p>Signed in as <strong>{username}</strong>.</p>
        <p>{client_name} is requesting:</p>
        <ul class="scopes">{scopes}</ul>
        <form method="POST" action="/authorize?{query}">
            <input type="hidden" name="consent_token" value="{consent_token}">
            <div class="actions">
                <button type="submit" name="action" value="grant">Grant</button>
                <button type="submit" name="action" value="deny" class="secondary">Deny</button>
            </div>
            <div class="footer">
                Not {username}?
                <button type="submit" name="action" value="switch_user" class="secondary">Sign in as another user</button>
            </div>
        </form>
    </div>
</body>
</html>
"""

NO_SCOPE_ITEM = "<li>Basic access (no specific permissions)</li>"

AUTHORIZE_ERROR_PAGE = """
<!DOCTYPE html>
<html>
<head>
    <title>Authorization error</title>
""" + _STYLE + """
</head>
<body>
    <div class="container">
        <h1>Authorization error</h1>
        <div class="error">{error}: {description}</div>
        <p>The application that sent you here is not configured correctly. You can close this window.</p>
    </div>
</body>
</html>
"""

SIGNED_OUT_PAGE = """
<!DOCTYPE html>
<html>
<head>
    <title>Signed out</title>
""" + _STYLE + """
</head>
<body>
    <div class="container">
        <h1>Signed out</h1>
        <p>You have been signed out. You can close this window.</p>
    </div>
</body>
</html>
"""
