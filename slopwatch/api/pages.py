"""Static pages served by the API."""

PRIVACY_POLICY_UPDATED = "January 12, 2026"

PRIVACY_POLICY_HTML = f"""<!DOCTYPE html>
<html lang="en">
<head>
  <meta charset="UTF-8">
  <meta name="viewport" content="width=device-width, initial-scale=1.0">
  <title>Privacy Policy - SlopWatch</title>
  <style>
    body {{
      font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, sans-serif;
      background: #15202b;
      color: #e7e9ea;
      line-height: 1.6;
      padding: 40px 20px;
    }}
    .container {{ max-width: 800px; margin: 0 auto; }}
    h1 {{ color: #ef4444; margin-bottom: 8px; }}
    h2 {{ margin-top: 32px; font-size: 20px; }}
    p, li {{ color: #8b98a5; }}
    .updated {{ font-size: 14px; margin-bottom: 32px; }}
  </style>
</head>
<body>
  <div class="container">
    <h1>SlopWatch Privacy Policy</h1>
    <p class="updated">Last updated: {PRIVACY_POLICY_UPDATED}</p>

    <h2>Overview</h2>
    <p>SlopWatch lets users collectively flag AI-generated content ("slop") on X.com.
    We only keep what is needed to count votes.</p>

    <h2>Data We Collect</h2>
    <ul>
      <li><strong>Anonymous User ID:</strong> a random 32-character identifier generated
      and stored locally in your browser. It is not linked to your identity.</li>
      <li><strong>Vote Data:</strong> the public ID of each post you vote on, stored with
      your anonymous ID to prevent duplicate votes and to compute your streak and
      accuracy statistics.</li>
    </ul>

    <h2>Data We Do NOT Collect</h2>
    <ul>
      <li>Your name, email, or any personal information</li>
      <li>Your X.com username or account information</li>
      <li>Your browsing history or the content of posts you view</li>
    </ul>

    <h2>Data Sharing</h2>
    <p>We do not sell, trade, or share your data. Aggregate vote counts are visible to
    all users.</p>

    <h2>Data Retention</h2>
    <p>Vote data is retained to keep community counts accurate. You can reset your
    anonymous ID by reinstalling the extension.</p>
  </div>
</body>
</html>
"""
