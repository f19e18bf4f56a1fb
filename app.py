from stocksync import create_app

app = create_app()

if __name__ == "__main__":
    # Runs on all interfaces so devices on the warehouse network can sync
    app.run(host="0.0.0.0", port=5000, debug=True)
