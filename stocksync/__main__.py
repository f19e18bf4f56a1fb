from stocksync.cli import main

raise SystemExit(main())
