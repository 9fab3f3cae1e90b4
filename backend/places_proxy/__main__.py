from places_proxy.main import run

run()
