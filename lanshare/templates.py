"""Inline page templates rendered with Flask's render_template_string."""

BASE_CSS = r'''
    body { font-family: -apple-system, "Segoe UI", Roboto, Arial, sans-serif; background: #f7f4f3;
           color: #191610; display: flex; align-items: center; justify-content: center;
           min-height: 100vh; margin: 0; padding: 20px; box-sizing: border-box; }
    .card { background: #fff; border: 3px solid #191610; border-radius: 24px;
            box-shadow: 10px 10px 0 #191610; width: 100%; max-width: 460px; padding: 36px; text-align: center; }
    h1 { font-size: 1.4rem; letter-spacing: 2px; margin: 0 0 20px; }
    .muted { color: #6b6b6b; font-size: 0.9rem; }
    .info { background: #f0f0f0; border: 2px solid #191610; border-radius: 14px; padding: 16px;
            margin-bottom: 24px; text-align: left; }
    .label { font-size: 0.7rem; font-weight: 700; color: #6b6b6b; }
    .value { font-family: ui-monospace, Menlo, Consolas, monospace; font-weight: 700; word-break: break-all;
             margin-bottom: 10px; }
    button, .btn { width: 100%; padding: 14px; background: #191610; color: #fff; border: 0; border-radius: 12px;
                   font-weight: 700; cursor: pointer; text-decoration: none; display: block; box-sizing: border-box; }
    button:hover, .btn:hover { background: #52a1d8; }
    input[type="password"], textarea { width: 100%; padding: 12px; background: #f0f0f0; box-sizing: border-box;
                                       border: 2px solid #191610; border-radius: 10px; font-family: monospace;
                                       margin-bottom: 14px; }
    #error { color: #ff5a5f; font-weight: 700; min-height: 1.2em; }
    ul.history { list-style: none; padding: 0; text-align: left; max-height: 240px; overflow-y: auto; }
    ul.history li { border-bottom: 1px solid #ddd; padding: 6px 0; font-family: monospace; white-space: pre-wrap;
                    word-break: break-all; cursor: pointer; }
    .footer { margin-top: 24px; font-size: 0.7rem; font-weight: 700; opacity: 0.5; letter-spacing: 1px; }
'''

SEND_HTML = r'''
<!doctype html>
<html lang="en">
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>lanshare - Download</title>
    <style>{{ css|safe }}</style>
</head>
<body>
<div class="card">
    <h1>LANSHARE</h1>
    <p class="muted">Someone is sharing a file with you.</p>
    <div class="info">
        <div class="label">FILE</div><div class="value">{{ name }}</div>
        <div class="label">SIZE</div><div class="value">{{ size }}</div>
        <div class="label">DOWNLOADS</div><div class="value" id="count">-</div>
    </div>
    {% if has_password %}
    <input type="password" id="code" placeholder="Security code" autocomplete="off">
    {% endif %}
    <button type="button" id="downloadBtn">Download</button>
    <p id="error"></p>
    <div class="footer"><a href="{{ url_for('clipboard_page') }}">CLIPBOARD</a></div>
</div>
<script>
    const HAS_PASSWORD = {{ 'true' if has_password else 'false' }};
    const errorBox = document.getElementById('error');

    async function refresh() {
        const r = await fetch('/api/info');
        if (!r.ok) { errorBox.textContent = 'This share has ended.'; return; }
        const info = await r.json();
        document.getElementById('count').textContent =
            info.limit > 0 ? `${info.current} / ${info.limit}` : `${info.current}`;
    }

    document.getElementById('downloadBtn').addEventListener('click', async () => {
        errorBox.textContent = '';
        if (HAS_PASSWORD) {
            const code = document.getElementById('code').value;
            const r = await fetch('/api/verify', {
                method: 'POST',
                headers: {'Content-Type': 'application/json'},
                body: JSON.stringify({code}),
            });
            const res = await r.json();
            if (!res.success) { errorBox.textContent = 'Wrong code.'; return; }
        }
        window.location.href = '/download';
        setTimeout(refresh, 1500);
    });

    refresh();
</script>
</body>
</html>
'''

RECEIVE_HTML = r'''
<!doctype html>
<html lang="en">
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>lanshare - Send a file</title>
    <style>{{ css|safe }}</style>
</head>
<body>
<div class="card">
    <h1>LANSHARE</h1>
    <p class="muted">Send a file to this computer.</p>
    <form action="{{ url_for('upload') }}" method="post" enctype="multipart/form-data">
        <input type="file" name="file" required>
        <br><br>
        <button type="submit">Send File</button>
    </form>
    <div class="footer"><a href="{{ url_for('clipboard_page') }}">CLIPBOARD</a></div>
</div>
</body>
</html>
'''

UPLOAD_DONE_HTML = r'''
<!doctype html>
<html lang="en">
<head>
    <meta charset="utf-8">
    <title>lanshare - Sent</title>
    <style>{{ css|safe }}</style>
</head>
<body>
<div class="card">
    <h1>FILE SENT!</h1>
    <p class="muted">{{ name }} ({{ size }})</p>
    <a class="btn" href="{{ url_for('receive_index') }}">Send another</a>
</div>
<script>setTimeout(() => window.location.href = '{{ url_for('receive_index') }}', 2000)</script>
</body>
</html>
'''

CLIPBOARD_HTML = r'''
<!doctype html>
<html lang="en">
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>lanshare - Clipboard</title>
    <style>{{ css|safe }}</style>
</head>
<body>
<div class="card">
    <h1>CLIPBOARD</h1>
    <form action="{{ url_for('clipboard_page') }}" method="post">
        <textarea name="text" id="text" rows="6" placeholder="Text to send to the host"></textarea>
        <button type="submit">Send to host</button>
    </form>
    <br>
    <button type="button" id="copyBtn">Copy host clipboard</button>
    <ul class="history" id="history">
        {% for item in history %}
        <li>{{ item }}</li>
        {% else %}
        <li class="muted">No history yet.</li>
        {% endfor %}
    </ul>
</div>
<script>
    const txt = document.getElementById('text');
    const list = document.getElementById('history');

    document.getElementById('copyBtn').addEventListener('click', async () => {
        const r = await fetch('/clipboard-data');
        const value = await r.text();
        txt.value = value;
        try { await navigator.clipboard.writeText(value); } catch (e) { txt.select(); }
    });

    list.addEventListener('click', (e) => {
        const li = e.target.closest('li');
        if (li && !li.classList.contains('muted')) txt.value = li.textContent;
    });

    // Polling logic
    setInterval(async () => {
        const r = await fetch('/clipboard-history');
        if (!r.ok) return;
        const items = await r.json();
        if (!items.length) return;
        list.replaceChildren(...items.map((t) => {
            const li = document.createElement('li');
            li.textContent = t;
            return li;
        }));
    }, 2000);
</script>
</body>
</html>
'''
