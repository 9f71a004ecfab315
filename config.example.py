# iCollege configuration
# Setup your iCollege install for various environments.
# Copy this file to config.py (the app does this on first start) and edit it.

import os

_here = os.path.dirname(os.path.abspath(__file__))

config = {
    # ### Development **(default)**
    "development": {
        # The url to use when providing links to the site, e.g. in RSS and email.
        "url": "http://localhost:2368",
        "database": {
            "mongodb": {
                "connection": {
                    "host": "127.0.0.1",
                    "port": 27017,
                    "database": "icollege-dev",
                },
                "options": {},
            },
        },
        "server": {
            "host": "127.0.0.1",
            "port": "2368",
        },
        "paths": {
            "contentPath": os.path.join(_here, "content"),
        },
    },

    # ### Production
    # When running iCollege in the wild, use the production environment.
    "production": {
        "url": "http://my-icollege-blog.com",
        "database": {
            "mongodb": {
                "connection": {
                    "host": "127.0.0.1",
                    "port": 27017,
                    "database": "icollege",
                },
                "options": {},
            },
        },
        "server": {
            "host": "127.0.0.1",
            "port": "2368",
        },
    },

    # **Developers only need to edit below here**

    # ### Testing
    # Used when developing iCollege to run tests and check the health of the code.
    "testing": {
        "url": "http://127.0.0.1:2369",
        "database": {
            "mongodb": {
                "connection": {
                    "host": "127.0.0.1",
                    "port": 27017,
                    "database": "icollege-test",
                },
                "options": {},
            },
        },
        "server": {
            "host": "127.0.0.1",
            "port": "2369",
        },
        "privacy": {},
    },
}
