from setuptools import setup, find_packages

setup(
    name="calibrasil",
    version="1.0.0",
    packages=find_packages(include=["calibrasil", "calibrasil.*"]),
    include_package_data=True,
    package_data={"calibrasil.infrastructure": ["templates/emails/*.html"]},
    install_requires=[
        "django>=4.2",
        "djangorestframework",
        "drf-spectacular",
        "djangorestframework-simplejwt",
        "django-cors-headers",
        "psycopg2-binary",
        "python-decouple",
        "requests",
        "resend",
    ],
    extras_require={
        "test": ["pytest", "pytest-django"],
    },
    python_requires=">=3.11",
)
