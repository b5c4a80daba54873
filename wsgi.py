"""
WSGI entry point — `gunicorn wsgi:app`.

Background reprocessing runs in a separate RQ worker:
    rq worker --url "$REDIS_URL"
"""
import os

from leadsignal import create_app

app = create_app()

if __name__ == '__main__':
    app.run(host='0.0.0.0', port=int(os.getenv('PORT', 8080)), debug=os.getenv('FLASK_DEBUG') == '1')
