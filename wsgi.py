"""WSGI entry point for production deployment.

Long polls hold their request open, so serve with the gevent worker class
(see gunicorn.conf.py):

    gunicorn -c gunicorn.conf.py wsgi:application
"""

from collabchat import create_app

# Standard WSGI application variable name
application = create_app()

if __name__ == "__main__":
    # For development only
    application.run(threaded=True)
