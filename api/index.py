from mangum import Mangum

# Serverless entry point: the routes live in the backend package
from acroform_fixup.app import app

# Function handler
handler = Mangum(app)
