# show_routes.py
from howisyourday.main import create_app

app = create_app()

with app.app_context():
    print("All registered routes:")
    for rule in sorted(app.url_map.iter_rules(), key=lambda r: r.rule):
        methods = ','.join(sorted(rule.methods - {'HEAD', 'OPTIONS'}))
        print(f"{rule.endpoint:40s} {methods:20s} {rule.rule}")
