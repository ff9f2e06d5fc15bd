from sheetdb.cli import main

raise SystemExit(main())
