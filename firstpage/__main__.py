from firstpage.cli import main

raise SystemExit(main())
