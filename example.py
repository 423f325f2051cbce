import logging

import tinypat

app = tinypat.Router()


def home(request: tinypat.Request, response: tinypat.Response):
    return "Hello World"


def show_item(request: tinypat.Request, response: tinypat.Response):
    return {"id": request.route_vars["id"], "query": request.query_vars}


app.get("/items/:id", show_item).named("item")
app.get("/", home)


def main():
    """Program entry point."""
    logging.basicConfig(level=logging.DEBUG)
    app.serve_forever()


if __name__ == "__main__":
    main()
