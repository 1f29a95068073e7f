"""
TrailTag - Main Application

This module serves as the main entry point for the TrailTag check-in
server. It configures logging, builds the Flask application from the
configuration named by FLASK_ENV and runs the development server.

Features:
- QR code check-in for learning programs
- Admin, parent and student roles with bearer-token authentication
- Program and QR code administration
- Dashboards and check-in export to Excel/CSV
"""

import logging
import os

from trailtag import create_app

# Configure logging
logging.basicConfig(
    level=os.environ.get('LOG_LEVEL', 'INFO'),
    format='%(asctime)s %(levelname)s: %(message)s [in %(pathname)s:%(lineno)d]'
)
logger = logging.getLogger(__name__)

app = create_app(os.environ.get('FLASK_ENV'))

if __name__ == '__main__':
    host = os.environ.get('HOST', '0.0.0.0')
    port = int(os.environ.get('PORT', 5000))
    logger.info(f"Starting TrailTag on {host}:{port}")
    app.run(debug=app.config['DEBUG'], host=host, port=port)
